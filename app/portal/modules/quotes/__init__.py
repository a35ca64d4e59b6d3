"""
Quotes module.

- Customers request quotes for a list of items and approve or reject them
- Staff send, scrap and invoice quotes
"""
