"""Default table registry for the inventory store.

Maps model names to physical table names.  Auth tables keep their
mixed-case identifiers, so they are quoted for PostgreSQL.
"""

from snapshot_vault.snapshot.models import ColumnFold, TableRegistry

INVENTORY_TABLES: dict[str, str] = {
    # Core inventory
    "Category": "categories",
    "CableType": "cable_types",
    "CableEnd": "cable_ends",
    "BulkCable": "bulk_cables",
    "CableAssembly": "cable_assemblies",
    "Asset": "assets",
    "AssetSerialNumber": "asset_serial_numbers",
    "FinancialRecord": "financial_records",
    # Operations
    "Checkout": "checkouts",
    "MaintenanceRecord": "maintenance_records",
    "Movement": "movements",
    # Auth
    "User": '"User"',
    "UserKey": '"UserKey"',
    "UserSession": '"UserSession"',
    # System logs / notifications
    "AuditLog": "audit_logs",
    "Notification": "notifications",
    # Rooms & cabling
    "Room": "rooms",
    "CableRoute": "cable_routes",
    "CableSegment": "cable_segments",
    # Automation
    "AutomatedTask": "automated_tasks",
    "AutomatedTaskLog": "automated_task_logs",
    # Projects & kits
    "Project": "projects",
    "ProjectAsset": "project_assets",
    "ProjectTask": "project_tasks",
    "Kit": "kits",
    "KitAsset": "kit_assets",
}

# Asset.serialNumber was replaced by the asset_serial_numbers table
ASSET_SERIAL_FOLD = ColumnFold(
    source_table="Asset",
    source_columns=["serialNumber", "serial_number"],
    target_table="AssetSerialNumber",
    key_column="id",
    target_key="assetId",
    target_value="serialNumber",
)


def default_registry() -> TableRegistry:
    """Registry covering every inventory table, with the serial-number fold."""
    return TableRegistry(tables=dict(INVENTORY_TABLES), folds=[ASSET_SERIAL_FOLD])
