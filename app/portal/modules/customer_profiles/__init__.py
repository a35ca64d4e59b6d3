"""
Customer Profiles module.

- Customers maintain their own profile (billing/shipping address, GST details)
- Portal users are matched to customer records by user id, then by email
- Staff can list and view customers
"""
