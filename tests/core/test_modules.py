from typing import Iterable

import pytest

from project_maps.core.graph import build_graph, resolve_records
from project_maps.core.models import FileRecord, ImportRef
from project_maps.core.modules import (
    assign_modules,
    build_module_dependencies,
    build_modules,
    categorize_file,
    coupling_level,
)


def _make_record(path: str, imports: Iterable[str] = (), role: str = "source", size: int = 10) -> FileRecord:
    name = path.rsplit("/", 1)[-1]
    return FileRecord(
        path=path,
        name=name,
        extension=name.rsplit(".", 1)[-1] if "." in name else "",
        file_type="typescript",
        language="TypeScript",
        role=role,
        size=size,
        lines=2,
        modified=0.0,
        hash="",
        imports=[ImportRef(source=source) for source in imports],
    )


def test_assign_modules_detection_order() -> None:
    files = [
        _make_record("src/features/billing/api.ts"),
        _make_record("src/features/billing/invoice.ts"),
        _make_record("src/userProfile.ts"),
        _make_record("src/widgets/a.ts"),
        _make_record("src/widgets/b.ts"),
        _make_record("src/widgets/c.ts"),
        _make_record("src/lib/x.ts"),
        _make_record("src/lib/y.ts"),
        _make_record("src/lib/z.ts"),
        _make_record("scripts/deploy.sh"),
        _make_record("README.md", role="documentation"),
    ]

    assigned = assign_modules(files)

    assert assigned["src/features/billing/api.ts"] == ("billing", "directory")
    assert assigned["src/userProfile.ts"] == ("user", "naming")
    assert assigned["src/widgets/b.ts"] == ("widgets", "colocation")
    # generic directories never become modules by co-location
    assert assigned["src/lib/x.ts"] == ("src", "top-level")
    assert assigned["scripts/deploy.sh"] == ("scripts", "top-level")
    assert assigned["README.md"] == ("root", "top-level")


@pytest.mark.parametrize(
    "path, role, layer, category",
    [
        ("src/a.test.ts", "test", "other", "tests"),
        ("docs/a.md", "documentation", "other", "docs"),
        ("tsconfig.json", "config", "other", "configs"),
        ("src/screens/Home.tsx", "source", "other", "screens"),
        ("src/app/page.tsx", "source", "other", "pages"),
        ("src/Button.tsx", "source", "other", "components"),
        ("src/user.repository.ts", "source", "repositories", "models"),
        ("src/api/client.ts", "source", "api", "apis"),
        ("src/misc.ts", "source", "other", "other"),
    ],
)
def test_categorize_file(path: str, role: str, layer: str, category: str) -> None:
    assert categorize_file(_make_record(path, role=role), layer) == category


def test_build_modules_aggregates_files() -> None:
    files = [
        _make_record("src/features/orders/order.service.ts", size=100),
        _make_record("src/features/orders/order.controller.ts", size=50),
        _make_record("src/features/orders/order.spec.ts", role="test", size=5),
    ]
    assignments = {
        "src/features/orders/order.service.ts": "services",
        "src/features/orders/order.controller.ts": "controllers",
    }

    result = build_modules(files, assignments, {"src/features/orders/order.service.ts": ["orders"]})

    orders = result["modules"]["orders"]
    assert orders["detection_method"] == "directory"
    assert orders["stats"] == {"file_count": 3, "total_size": 155, "total_lines": 6}
    assert orders["files"] == {
        "controllers": ["src/features/orders/order.controller.ts"],
        "services": ["src/features/orders/order.service.ts"],
        "tests": ["src/features/orders/order.spec.ts"],
    }
    assert list(orders["files"]) == ["controllers", "services", "tests"]
    assert orders["files_by_role"] == {"source": 2, "test": 1}
    assert orders["tables_used"] == ["orders"]
    assert result["summary"] == {"total_modules": 1, "total_files": 3}
    assert result["file_modules"]["src/features/orders/order.spec.ts"] == "orders"


@pytest.mark.parametrize("connections, level", [(0, "isolated"), (2, "loose"), (5, "moderate"), (6, "tight")])
def test_coupling_level(connections: int, level: str) -> None:
    assert coupling_level(connections) == level


def test_module_dependencies() -> None:
    files = resolve_records([
        _make_record("src/features/cart/cart.ts", ["../billing/pay", "./util"]),
        _make_record("src/features/cart/util.ts"),
        _make_record("src/features/billing/pay.ts"),
        _make_record("src/features/search/index.ts"),
    ])
    file_modules = {
        "src/features/cart/cart.ts": "cart",
        "src/features/cart/util.ts": "cart",
        "src/features/billing/pay.ts": "billing",
        "src/features/search/index.ts": "search",
    }

    result = build_module_dependencies(file_modules, build_graph(files))

    cart = result["dependencies"]["cart"]
    assert cart["depends_on"] == ["billing"]
    assert cart["import_count"] == 1
    assert cart["coupling"] == "loose"
    assert result["dependencies"]["billing"]["depended_by"] == ["cart"]
    assert result["summary"] == {"total_modules": 3, "isolated_modules": 1, "tightly_coupled": 0}
