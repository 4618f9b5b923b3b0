# Overview: Permission category constants used to group permissions for display.


class PermissionCategory:
    """Permission categories for organization."""
    DATA = "DATA"
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    COLLECTIONS = "COLLECTIONS"
    ANALYTICS = "ANALYTICS"
    AI = "AI"
    COMPANY = "COMPANY"
    SYSTEM = "SYSTEM"
