from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from threatgraph.linker import ModelLinker
from threatgraph.model import ParsedModel
from threatgraph.schemas import ModelInput
from threatgraph.technologies import TechnologyRegistry


SHOP_MODEL: dict[str, Any] = {
    "title": "Web Shop",
    "date": "2024-01-15",
    "business_criticality": "important",
    "tags_available": ["pci", "public"],
    "data_assets": {
        "Customer Data": {
            "id": "customer-data",
            "usage": "business",
            "quantity": "many",
            "confidentiality": "confidential",
            "integrity": "critical",
            "availability": "operational",
            "tags": ["pci"],
        },
        "Public Content": {
            "id": "public-content",
            "confidentiality": "public",
            "integrity": "operational",
            "availability": "operational",
        },
    },
    "technical_assets": {
        "Customer Browser": {
            "id": "customer-browser",
            "type": "external-entity",
            "technology": "browser",
            "internet": True,
            "out_of_scope": True,
            "confidentiality": "public",
            "integrity": "operational",
            "availability": "operational",
            "communication_links": {
                "Web Traffic": {
                    "target": "web-app",
                    "protocol": "https",
                    "authentication": "none",
                    "data_assets_sent": ["customer-data"],
                    "data_assets_received": ["public-content"],
                },
            },
        },
        "Web App": {
            "id": "web-app",
            "type": "process",
            "technology": "web-application",
            "confidentiality": "internal",
            "integrity": "important",
            "availability": "important",
            "data_assets_processed": ["customer-data"],
            "communication_links": {
                "Database Access": {
                    "target": "customer-db",
                    "protocol": "jdbc",
                    "authentication": "credentials",
                    "authorization": "technical-user",
                    "data_assets_sent": ["customer-data"],
                    "data_assets_received": ["customer-data"],
                },
            },
        },
        "Customer DB": {
            "id": "customer-db",
            "type": "datastore",
            "technology": "database",
            "encryption": "none",
            "confidentiality": "confidential",
            "integrity": "critical",
            "availability": "critical",
            "data_assets_stored": ["customer-data"],
        },
    },
    "trust_boundaries": {
        "DMZ": {
            "id": "dmz",
            "type": "network-cloud-security-group",
            "technical_assets_inside": ["web-app"],
        },
        "Backend": {
            "id": "backend",
            "type": "network-cloud-security-group",
            "technical_assets_inside": ["customer-db"],
        },
    },
}


@pytest.fixture(scope="session")
def registry() -> TechnologyRegistry:
    return TechnologyRegistry.load_default()


@pytest.fixture
def shop_data() -> dict[str, Any]:
    return copy.deepcopy(SHOP_MODEL)


@pytest.fixture
def link(registry: TechnologyRegistry) -> Callable[..., ParsedModel]:
    def _link(data: dict[str, Any], rule_categories=()) -> ParsedModel:
        return ModelLinker(registry, rule_categories).link(ModelInput(**data))

    return _link


@pytest.fixture
def write_model(tmp_path: Path) -> Callable[..., Path]:
    def _write(data: dict[str, Any], name: str = "threagile.yaml") -> Path:
        path = tmp_path / name
        _ = path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return path

    return _write
