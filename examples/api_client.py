#!/usr/bin/env python3
"""
Example client for the OData Schema Cache API.

Lists the entity sets of an OData service, resolves a derived entity set
path and prints the cache counters afterwards.
"""

import argparse
import json
from typing import Dict, List, Optional

import httpx


class SchemaCacheClient:
    """Client for interacting with the OData Schema Cache API."""

    def __init__(self, base_url: str = "http://localhost:8000"):
        self.base_url = base_url
        self.client = httpx.Client(base_url=base_url, timeout=30.0)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.client.close()

    def get_health(self) -> Dict:
        response = self.client.get("/health")
        response.raise_for_status()
        return response.json()

    def list_entity_sets(self, service_url: str) -> List[Dict]:
        """
        List the top-level entity sets of a service.

        Args:
            service_url: OData service root URL

        Returns:
            Serialized entity sets in container order
        """
        response = self.client.get("/schemas/entity-sets", params={"url": service_url})
        response.raise_for_status()
        return response.json()["entity_sets"]

    def get_entity_set(self, service_url: str, path: str) -> Optional[Dict]:
        """
        Resolve an entity set path such as ``Products/DiscontinuedProduct``.

        Returns:
            The entity set, or None if the service does not define it
        """
        response = self.client.get(f"/schemas/entity-sets/{path}", params={"url": service_url})
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    def list_entity_types(self, service_url: str) -> List[Dict]:
        response = self.client.get("/schemas/entity-types", params={"url": service_url})
        response.raise_for_status()
        return response.json()["types"]

    def reset(self, service_url: str) -> bool:
        """Drop the cached metadata for one service; it is fetched again on next use."""
        response = self.client.post("/schemas/reset", params={"url": service_url})
        response.raise_for_status()
        return response.json()["reset"]

    def get_metrics(self) -> Dict:
        response = self.client.get("/metrics/schema-cache")
        response.raise_for_status()
        return response.json()


def main():
    parser = argparse.ArgumentParser(description="OData Schema Cache API example")
    parser.add_argument(
        "--service",
        default="https://services.odata.org/V4/Northwind/Northwind.svc/",
        help="OData service root URL",
    )
    parser.add_argument("--api", default="http://localhost:8000", help="Schema cache API URL")
    parser.add_argument("--path", default="Products", help="Entity set path to resolve")
    args = parser.parse_args()

    with SchemaCacheClient(args.api) as client:
        print(f"API status: {client.get_health()['status']}")

        entity_sets = client.list_entity_sets(args.service)
        print(f"\nEntity sets ({len(entity_sets)}):")
        for entity_set in entity_sets:
            print(f"  ○ {entity_set['name']} ({entity_set['entity_type']})")

        entity_set = client.get_entity_set(args.service, args.path)
        if entity_set is None:
            print(f"\n✗ {args.path} not found")
        else:
            print(f"\n✓ {entity_set['path']} -> {entity_set['entity_type']}")

        print("\nCache metrics:")
        print(json.dumps(client.get_metrics()["resolution"], indent=2))


if __name__ == "__main__":
    main()
