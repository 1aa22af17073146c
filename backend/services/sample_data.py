import logging

from services.schema_model import column_from_dict
from services.workspace import TableWorkspace

logger = logging.getLogger(__name__)

SAMPLE_TABLE_ID = "sample-employees"

SAMPLE_COLUMNS = [
    {"id": "name", "name": "Name", "type": "text"},
    {"id": "department", "name": "Department", "type": "select", "options": ["R&D", "Marketing", "HR", "Finance"]},
    {"id": "salary", "name": "Salary", "type": "number"},
    {"id": "hired_date", "name": "Hired Date", "type": "date"},
    {"id": "email", "name": "Email", "type": "email"},
    {"id": "phone", "name": "Phone", "type": "phone"},
    {"id": "active", "name": "Active", "type": "boolean"},
]

SAMPLE_ROWS = [
    {
        "id": "emp1",
        "name": "Ming Zhang",
        "department": "R&D",
        "salary": 65000,
        "hired_date": "2023-01-15",
        "email": "ming.zhang@company.com",
        "phone": "0912-345-678",
        "active": True,
    },
    {
        "id": "emp2",
        "name": "Hua Li",
        "department": "Marketing",
        "salary": 58000,
        "hired_date": "2023-03-22",
        "email": "hua.li@company.com",
        "phone": "0923-456-789",
        "active": True,
    },
]


def ensure_sample_table(workspace: TableWorkspace) -> bool:
    """Create the sample employee table when the workspace holds no tables at all."""
    if workspace.list_tables():
        return False

    workspace.create_table(
        "Employees",
        [column_from_dict(col) for col in SAMPLE_COLUMNS],
        table_id=SAMPLE_TABLE_ID,
    )
    for sample in SAMPLE_ROWS:
        fields = {k: v for k, v in sample.items() if k != "id"}
        workspace.create_row(SAMPLE_TABLE_ID, fields, row_id=sample["id"])

    logger.info("SEED: created sample table %s with %s rows", SAMPLE_TABLE_ID, len(SAMPLE_ROWS))
    return True
