"""
Central constants for the sales portal.
"""
from __future__ import annotations

# Role keys
ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"
ROLE_SUPER_ADMIN = "super_admin"
STAFF_ROLES = (ROLE_ADMIN, ROLE_SUPER_ADMIN)

ROLE_NAMES = {
    ROLE_CUSTOMER: "Customer",
    ROLE_ADMIN: "Administrator",
    ROLE_SUPER_ADMIN: "Super Administrator",
}

# GST state codes used for place of supply
INDIAN_STATES = {
    "01": "Jammu and Kashmir",
    "02": "Himachal Pradesh",
    "03": "Punjab",
    "04": "Chandigarh",
    "05": "Uttarakhand",
    "06": "Haryana",
    "07": "Delhi",
    "08": "Rajasthan",
    "09": "Uttar Pradesh",
    "10": "Bihar",
    "11": "Sikkim",
    "12": "Arunachal Pradesh",
    "13": "Nagaland",
    "14": "Manipur",
    "15": "Mizoram",
    "16": "Tripura",
    "17": "Meghalaya",
    "18": "Assam",
    "19": "West Bengal",
    "20": "Jharkhand",
    "21": "Odisha",
    "22": "Chhattisgarh",
    "23": "Madhya Pradesh",
    "24": "Gujarat",
    "25": "Daman and Diu (Old)",
    "26": "Dadra and Nagar Haveli and Daman and Diu",
    "27": "Maharashtra",
    "28": "Andhra Pradesh (Old)",
    "29": "Karnataka",
    "30": "Goa",
    "31": "Lakshadweep",
    "32": "Kerala",
    "33": "Tamil Nadu",
    "34": "Puducherry",
    "35": "Andaman and Nicobar Islands",
    "36": "Telangana",
    "37": "Andhra Pradesh",
    "38": "Ladakh",
    "97": "Other Territory",
}

GST_TREATMENTS = frozenset({
    "registered_regular",
    "registered_composition",
    "unregistered_business",
    "consumer",
    "overseas",
    "sez_unit",
})

CUSTOMER_TYPES = ("business", "individual")

DEFAULT_COUNTRY = "India"
