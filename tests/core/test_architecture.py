from typing import Iterable, List

import pytest

from project_maps.core.architecture import (
    CONFIDENCE_RANK,
    assign_layer,
    assign_layers,
    confidence_for,
    count_evidence,
    detect_architecture,
    detect_patterns,
    layer_summary,
)
from project_maps.core.config import DEFAULT_CONFIDENCE_THRESHOLDS, ProjectMapsConfig
from project_maps.core.models import FileRecord


def _make_record(path: str, markers: Iterable[str] = (), role: str = "source") -> FileRecord:
    name = path.rsplit("/", 1)[-1]
    return FileRecord(
        path=path,
        name=name,
        extension=name.rsplit(".", 1)[-1],
        file_type="javascript",
        language="JavaScript",
        role=role,
        size=10,
        lines=1,
        modified=0.0,
        hash="",
        markers=list(markers),
    )


def _records(paths: List[str]) -> List[FileRecord]:
    return [_make_record(path) for path in paths]


@pytest.mark.parametrize(
    "path, markers, layer",
    [
        ("src/controllers/user.js", (), "controllers"),
        # deepest layer directory wins
        ("src/services/models/user.js", (), "models"),
        ("src/Handlers/user.js", (), "controllers"),
        ("src/user.controller.ts", (), "controllers"),
        ("src/userService.js", (), "services"),
        ("src/auth.routes.js", (), "routes"),
        ("src/user.service.spec.ts", (), "services"),
        ("src/index.js", ("express-router",), "routes"),
        ("app/things.py", ("django-model", "pydantic-model"), "models"),
        ("src/index.js", (), None),
    ],
)
def test_assign_layer_rules(path: str, markers: tuple, layer: str) -> None:
    assert assign_layer(path, markers) == layer


def test_assign_layer_depends_only_on_path_and_markers() -> None:
    first = assign_layer("lib/payments/paymentRepository.ts", ["nest-injectable"])
    second = assign_layer("lib/payments/paymentRepository.ts", ["nest-injectable"])

    assert first == second == "repositories"


def test_directory_rule_beats_filename() -> None:
    files = [_make_record("src/api/user.controller.js"), _make_record("src/api/index.js")]

    assignments = assign_layers(files)

    assert assignments == {"src/api/index.js": "api", "src/api/user.controller.js": "api"}


def test_fallback_uses_sibling_source_files() -> None:
    files = [
        _make_record("src/web/user.controller.js"),
        _make_record("src/web/order.controller.js"),
        _make_record("src/web/health.service.js"),
        _make_record("src/web/index.js"),
    ]

    assignments = assign_layers(files)

    assert assignments["src/web/index.js"] == "controllers"


def test_fallback_majority_with_alphabetical_tiebreak() -> None:
    files = [
        _make_record("lib/user.controller.js"),
        _make_record("lib/user.service.js"),
        _make_record("lib/main.js"),
        _make_record("lib/notes.md", role="documentation"),
    ]

    assignments = assign_layers(files)

    assert assignments["lib/main.js"] == "controllers"
    assert assignments["lib/notes.md"] == "other"


def test_patched_assignment_matches_full_assignment() -> None:
    before = _records(["src/a.controller.js", "src/b.js", "lib/c.service.js", "lib/d.js"])
    previous = assign_layers(before)
    after = _records(["src/a.controller.js", "src/b.js", "lib/c.repository.js", "lib/d.js"])
    changed = {"lib/c.service.js", "lib/c.repository.js"}

    patched = assign_layers(after, previous, changed)

    assert patched == assign_layers(after)
    assert patched["lib/d.js"] == "repositories"


def test_confidence_is_monotonic_in_evidence() -> None:
    for pattern in DEFAULT_CONFIDENCE_THRESHOLDS:
        ranks = [CONFIDENCE_RANK[confidence_for(pattern, count, DEFAULT_CONFIDENCE_THRESHOLDS)] for count in range(0, 60)]
        assert ranks == sorted(ranks)
        assert ranks[0] == CONFIDENCE_RANK["low"]
        assert ranks[-1] == CONFIDENCE_RANK["high"]


def test_evidence_counts_source_files_only() -> None:
    files = [
        _make_record("src/models/user.js"),
        _make_record("src/models/user.test.js", role="test"),
        _make_record("src/db/models/order.js"),
    ]

    assert count_evidence(files) == {"database": 1, "models": 2}


def test_detects_service_oriented() -> None:
    files = _records([
        "src/routes/users.js", "src/routes/orders.js",
        "src/services/users.js", "src/services/orders.js", "src/services/email.js",
        "src/controllers/users.js", "src/models/user.js",
    ])

    primary, candidates, counts = detect_patterns(files, ProjectMapsConfig())

    assert primary.type == "service-oriented"
    assert primary.evidence_count == 5
    assert primary.confidence == "low"
    assert counts["services"] == 3
    assert [candidate.type for candidate in candidates] == ["service-oriented"]


def test_detects_mvc_with_high_confidence() -> None:
    paths = []
    for layer in ("models", "views", "controllers"):
        paths.extend(f"app/{layer}/item{index}.js" for index in range(7))

    primary, _, _ = detect_patterns(_records(paths), ProjectMapsConfig())

    assert primary.type == "mvc"
    assert primary.evidence_count == 21
    assert primary.confidence == "high"


def test_detects_microservices() -> None:
    files = _records([
        "services/billing/main.go", "services/auth/main.go", "services/search/main.go",
    ])

    primary, _, _ = detect_patterns(files, ProjectMapsConfig())

    assert primary.type == "microservices"
    assert primary.evidence_count == 3
    assert primary.confidence == "medium"


def test_unknown_when_nothing_qualifies() -> None:
    result = detect_architecture(_records(["src/index.js", "src/util.js"]), ProjectMapsConfig())

    assert result.primary.type == "unknown"
    assert result.primary.confidence == "none"
    assert result.ambiguous
    assert result.candidates == []


def test_layer_summary_groups_source_files() -> None:
    files = _records(["src/routes/a.js", "src/services/b.js"]) + [_make_record("src/services/b.test.js", role="test")]
    assignments = assign_layers(files)

    assert layer_summary(assignments, files) == {
        "routes": ["src/routes/a.js"],
        "services": ["src/services/b.js"],
    }
