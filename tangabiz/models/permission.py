"""
tangabiz/models/permission.py

Roles and permissions for organization memberships.

A role belongs to a membership, not to a user: the same user can be ADMIN in
one organization and STAFF in another. Permissions are atomic tags; none
implies another.
"""

from enum import Enum


class Role(str, Enum):
    ADMIN = "ADMIN"  # organization owner and administrators
    MANAGER = "MANAGER"
    STAFF = "STAFF"


class Permission(str, Enum):
    # Dashboard
    VIEW_DASHBOARD = "view_dashboard"
    VIEW_SALES_STATS = "view_sales_stats"
    VIEW_REVENUE = "view_revenue"
    VIEW_PROFIT_MARGIN = "view_profit_margin"
    # Products
    VIEW_PRODUCTS = "view_products"
    CREATE_PRODUCTS = "create_products"
    EDIT_PRODUCTS = "edit_products"
    DELETE_PRODUCTS = "delete_products"
    VIEW_COST_PRICE = "view_cost_price"
    MANAGE_INVENTORY = "manage_inventory"
    # Categories
    VIEW_CATEGORIES = "view_categories"
    CREATE_CATEGORIES = "create_categories"
    EDIT_CATEGORIES = "edit_categories"
    DELETE_CATEGORIES = "delete_categories"
    # Customers
    VIEW_CUSTOMERS = "view_customers"
    CREATE_CUSTOMERS = "create_customers"
    EDIT_CUSTOMERS = "edit_customers"
    DELETE_CUSTOMERS = "delete_customers"
    MANAGE_EMAIL_CAMPAIGNS = "manage_email_campaigns"
    # Transactions
    VIEW_TRANSACTIONS = "view_transactions"
    CREATE_SALES = "create_sales"
    PROCESS_REFUNDS = "process_refunds"
    VOID_TRANSACTIONS = "void_transactions"
    VIEW_ALL_TRANSACTIONS = "view_all_transactions"
    # Reports
    VIEW_REPORTS = "view_reports"
    VIEW_SALES_REPORTS = "view_sales_reports"
    VIEW_INVENTORY_REPORTS = "view_inventory_reports"
    VIEW_FINANCIAL_REPORTS = "view_financial_reports"
    EXPORT_REPORTS = "export_reports"
    # Business settings
    VIEW_BUSINESS_SETTINGS = "view_business_settings"
    EDIT_BUSINESS_SETTINGS = "edit_business_settings"
    MANAGE_TEAM = "manage_team"
    INVITE_MEMBERS = "invite_members"
    REMOVE_MEMBERS = "remove_members"
    CHANGE_ROLES = "change_roles"
    MANAGE_BILLING = "manage_billing"
    # Notifications
    VIEW_NOTIFICATIONS = "view_notifications"
    MANAGE_NOTIFICATION_SETTINGS = "manage_notification_settings"
