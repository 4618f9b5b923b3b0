# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View products, stock levels, movements and alerts",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create, edit and deactivate products, categories, suppliers and warehouses",
        PermissionCategory.INVENTORY,
    ),
    (
        "ADJUST_INVENTORY",
        "Adjust Inventory",
        "Record stock movements (in, out, adjustment, transfer)",
        PermissionCategory.INVENTORY,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    (
        "VIEW_SALES",
        "View Sales",
        "View sales, invoices, customers and salespeople",
        PermissionCategory.SALES,
    ),
    (
        "MANAGE_SALES",
        "Manage Sales",
        "Record sales and invoices; maintain customers and salespeople",
        PermissionCategory.SALES,
    ),
]


# -- COLLECTIONS --

COLLECTION_PERMISSIONS = [
    (
        "VIEW_COLLECTIONS",
        "View Collections",
        "View collections, receivables, payments and activities",
        PermissionCategory.COLLECTIONS,
    ),
    (
        "MANAGE_COLLECTIONS",
        "Manage Collections",
        "Update collections, post payments and log collection activities",
        PermissionCategory.COLLECTIONS,
    ),
]


# -- ANALYTICS / DATA --

ANALYTICS_PERMISSIONS = [
    (
        "VIEW_ANALYTICS",
        "View Analytics",
        "View dashboards, KPIs and ABC classification",
        PermissionCategory.ANALYTICS,
    ),
    (
        "RUN_ANALYTICS",
        "Run Analytics",
        "Recompute and persist ABC classification and stock alerts",
        PermissionCategory.ANALYTICS,
    ),
]

DATA_PERMISSIONS = [
    (
        "IMPORT_DATA",
        "Import Data",
        "Upload CSV, Excel and JSON files",
        PermissionCategory.DATA,
    ),
    (
        "EXPORT_DATA",
        "Export Data",
        "Download CSV, Excel and PDF exports and reports",
        PermissionCategory.DATA,
    ),
    (
        "GENERATE_TEST_DATA",
        "Generate Test Data",
        "Fill the company with simulated demo data",
        PermissionCategory.DATA,
    ),
]


# -- AI --

AI_PERMISSIONS = [
    (
        "USE_AI",
        "Use AI Assistant",
        "Chat with the assistant and request AI business analysis",
        PermissionCategory.AI,
    ),
]


# -- COMPANY --

COMPANY_PERMISSIONS = [
    (
        "VIEW_COMPANY",
        "View Company",
        "View company profile, statistics and users",
        PermissionCategory.COMPANY,
    ),
    (
        "MANAGE_COMPANY",
        "Manage Company",
        "Edit company profile, invite users and change roles",
        PermissionCategory.COMPANY,
    ),
]


# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    (
        "MANAGE_ALL_COMPANIES",
        "Manage All Companies",
        "Cross-tenant company administration (platform operators only)",
        PermissionCategory.SYSTEM,
    ),
]


PERMISSION_DEFINITIONS = (
    INVENTORY_PERMISSIONS
    + SALES_PERMISSIONS
    + COLLECTION_PERMISSIONS
    + ANALYTICS_PERMISSIONS
    + DATA_PERMISSIONS
    + AI_PERMISSIONS
    + COMPANY_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
