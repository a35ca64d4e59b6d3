"""
Invoices module.

- Invoices are raised from approved quotes (GST computed at creation)
- Customers view and pay their invoices; payments are reconciled in place
- Staff send and void invoices
"""
