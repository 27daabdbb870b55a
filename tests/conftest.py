"""
tests/conftest.py
-----------------
Shared fixtures: a small "customers" table proposal.
"""
from __future__ import annotations

from typing import Any

import pytest

from models.mapping import TableMapping


def customers_payload() -> dict[str, Any]:
    return {
        "tableId": "t1",
        "tableName": "customers",
        "dialect": "google_standard_sql",
        "columns": [
            {
                "srcId": "s1", "spId": "c1", "srcOrder": 1, "spOrder": 0,
                "srcColName": "id", "srcDataType": "int", "srcIsPk": True,
                "srcIsNotNull": True, "srcColMaxLength": None,
                "spColName": "id", "spDataType": "INT64", "spIsPk": True,
                "spIsNotNull": True, "spColMaxLength": None,
            },
            {
                "srcId": "s2", "spId": "c2", "srcOrder": "2", "spOrder": 1,
                "srcColName": "name", "srcDataType": "varchar", "srcIsPk": False,
                "srcIsNotNull": False, "srcColMaxLength": "50",
                "spColName": "name", "spDataType": "STRING", "spIsPk": False,
                "spIsNotNull": False, "spColMaxLength": 50,
            },
            {
                "srcId": "s3", "spId": "c3", "srcOrder": 3, "spOrder": "2",
                "srcColName": "email", "srcDataType": "text", "srcIsPk": False,
                "srcIsNotNull": False, "srcColMaxLength": None,
                "spColName": "email", "spDataType": "STRING", "spIsPk": False,
                "spIsNotNull": False, "spColMaxLength": "MAX",
            },
            {
                "srcId": "s4", "spId": None, "srcOrder": 4,
                "srcColName": "legacy_flag", "srcDataType": "bit",
                "srcIsPk": False, "srcIsNotNull": False,
            },
        ],
        "indexes": {
            "idx_email": [
                {"srcColId": "s3", "spColId": "c3", "srcColName": "email",
                 "spColName": "email", "srcDesc": "false", "spDesc": False,
                 "srcOrder": 1, "spOrder": 1},
            ],
        },
    }


@pytest.fixture
def payload() -> dict[str, Any]:
    return customers_payload()


@pytest.fixture
def table(payload: dict[str, Any]) -> TableMapping:
    return TableMapping.from_dict(payload)
