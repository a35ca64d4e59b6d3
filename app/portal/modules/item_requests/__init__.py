"""
Item Requests module.

- Customers ask for items that are not in the catalog yet
- Staff approve or reject; approval adds the item to the catalog
"""
