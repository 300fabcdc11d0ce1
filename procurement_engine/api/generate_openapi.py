import json
import os

from procurement_engine.api.main import app

# Get the OpenAPI schema (note: all REST routes are under /api/v1)
openapi_schema = app.openapi()

# Document the scheduled sweep entry point alongside the HTTP surface
openapi_schema["x-scheduled-jobs"] = [
    {
        "command": "procurement-sweep bom",
        "summary": "Catalog-wide BOM shortage sweep; all-or-nothing.",
        "equivalent_route": "/api/v1/requisitions/sweeps/bom",
    },
    {
        "command": "procurement-sweep low-stock",
        "summary": "Top up non-assembly items at or below their reorder level.",
        "equivalent_route": "/api/v1/requisitions/sweeps/low-stock",
    },
]

# Write to file
output_dir = "interfaces"
os.makedirs(output_dir, exist_ok=True)
output_path = os.path.join(output_dir, "openapi.json")

with open(output_path, "w") as f:
    json.dump(openapi_schema, f, indent=2)
