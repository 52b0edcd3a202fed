#!/usr/bin/env python3
"""Tests for graph analytics over a component registry."""

import graph_analytics as analytics
from pattern_extractor import ComponentKind

MODEL = ComponentKind.MODEL
CONTROLLER = ComponentKind.CONTROLLER
SERVICE = ComponentKind.SERVICE
WORKER = ComponentKind.WORKER


class TestCounts:

    def test_fan_in_and_fan_out(self, build_registry):
        registry = build_registry(
            (MODEL, "A", ["C"]),
            (MODEL, "B", ["C"]),
            (MODEL, "C"),
        )
        references = analytics.reference_counts(registry, MODEL)
        assert references == {"A": 0, "B": 0, "C": 2}
        assert analytics.dependency_counts(registry, MODEL) == {"A": 1, "B": 1, "C": 0}

    def test_references_from_every_kind(self, build_registry):
        registry = build_registry(
            (MODEL, "User"),
            (CONTROLLER, "UsersController", ["User"]),
            (SERVICE, "SyncService", ["User", "Unknown"]),
            (WORKER, "SyncWorker", ["SyncService"]),
        )
        assert analytics.reference_counts(registry, MODEL) == {"User": 2}
        assert analytics.reference_counts(registry, SERVICE) == {"SyncService": 1}

    def test_self_reference_counts(self, build_registry):
        registry = build_registry((MODEL, "Node", ["Node"]))
        assert analytics.reference_counts(registry, MODEL) == {"Node": 1}

    def test_complexity_score(self, build_registry):
        registry = build_registry(
            (MODEL, "User", ["Firm", "Post"], {"firm": "belongs_to", "posts": "has_many"}),
            (CONTROLLER, "UsersController", ["User"], None, ["index", "show"]),
        )
        assert analytics.complexity_score(registry.get(MODEL, "User")) == 4
        assert analytics.complexity_score(registry.get(CONTROLLER, "UsersController")) == 1


class TestCycles:

    def test_mutual_pair_reported_once(self, build_registry):
        registry = build_registry(
            (MODEL, "B", ["A"]),
            (MODEL, "A", ["B"]),
        )
        assert analytics.find_cycles(registry) == [("A", "B")]

    def test_registration_order_does_not_change_pair(self, build_registry):
        forward = build_registry((MODEL, "A", ["B"]), (MODEL, "B", ["A"]))
        backward = build_registry((MODEL, "B", ["A"]), (MODEL, "A", ["B"]))
        assert analytics.find_cycles(forward) == analytics.find_cycles(backward) == [("A", "B")]

    def test_self_loops_are_ignored(self, build_registry):
        registry = build_registry((MODEL, "Node", ["Node"]))
        assert analytics.find_cycles(registry) == []

    def test_one_way_and_longer_cycles_are_ignored(self, build_registry):
        registry = build_registry(
            (MODEL, "A", ["B"]),
            (MODEL, "B", ["C"]),
            (MODEL, "C", ["A"]),
        )
        assert analytics.find_cycles(registry) == []

    def test_only_models_participate(self, build_registry):
        registry = build_registry(
            (SERVICE, "AService", ["BService"]),
            (SERVICE, "BService", ["AService"]),
        )
        assert analytics.find_cycles(registry) == []


class TestDomains:

    def test_model_buckets(self):
        grouped = analytics.group_by_domain(["Widget", "User", "CourtCase", "Invoice", "Firm"])
        assert grouped == {
            "User Management": ["User", "Firm"],
            "Court Cases": ["CourtCase"],
            "Payments": ["Invoice"],
            "Other": ["Widget"],
        }
        assert list(grouped) == ["User Management", "Court Cases", "Payments", "Other"]

    def test_first_matching_bucket_wins(self):
        # "client" (User Management) is checked before "invoice" (Payments)
        assert analytics.classify_domain("ClientInvoice") == "User Management"

    def test_service_table_adds_auth_and_integration(self):
        grouped = analytics.group_by_domain(["AuthService", "WebhookSyncService"], SERVICE)
        assert grouped == {
            "User Management": ["AuthService"],
            "Integration": ["WebhookSyncService"],
        }
        assert analytics.classify_domain("AuthService", MODEL) == "Other"

    def test_empty_input(self):
        assert analytics.group_by_domain([]) == {}


class TestRankingAndTiers:

    def test_high_complexity_areas(self, build_registry):
        eleven = [f"M{i}" for i in range(11)]
        nine = [f"S{i}" for i in range(9)]
        eight = [f"T{i}" for i in range(8)]
        registry = build_registry(
            (MODEL, "Busy", eleven),
            (MODEL, "Quiet", ["X"]),
            (SERVICE, "BusyService", nine),
            (SERVICE, "OkService", eight),
        )
        assert analytics.high_complexity_areas(registry) == [("Busy", 11), ("BusyService", 9)]

    def test_high_complexity_limit(self, build_registry):
        deps = [f"D{i}" for i in range(12)]
        registry = build_registry(*[(MODEL, f"Model{i}", deps) for i in range(12)])
        assert len(analytics.high_complexity_areas(registry)) == 10

    def test_top_by_is_stable(self):
        ranked = analytics.top_by({"a": 1, "b": 3, "c": 1, "d": 3}, 3)
        assert ranked == [("b", 3), ("d", 3), ("a", 1)]

    def test_tier_boundaries(self):
        assert analytics.tier(5, analytics.MODEL_DEPENDENCY_TIERS) == "low"
        assert analytics.tier(6, analytics.MODEL_DEPENDENCY_TIERS) == "medium"
        assert analytics.tier(10, analytics.MODEL_DEPENDENCY_TIERS) == "medium"
        assert analytics.tier(11, analytics.MODEL_DEPENDENCY_TIERS) == "high"
        assert analytics.tier(5, analytics.SERVICE_DEPENDENCY_TIERS) == "medium"

    def test_summarize(self, build_registry):
        registry = build_registry((MODEL, "A", ["B"]), (MODEL, "B", ["A"]), (WORKER, "W"))
        summary = analytics.summarize(registry)
        assert summary["components"] == {"models": 2, "controllers": 0, "services": 0, "workers": 1}
        assert summary["total_components"] == 3
        assert summary["circular_dependencies"] == [["A", "B"]]


class TestAffectedComponents:

    def test_changed_components_and_their_dependencies(self, build_registry):
        registry = build_registry(
            (MODEL, "User", ["Firm", "User"]),
            (MODEL, "Firm"),
        )
        affected = analytics.affected_components(
            registry,
            ["app/models/user.rb", "spec/models/user_spec.rb", "app/models/firm.rb"]
        )
        assert affected[MODEL] == ["User", "Firm"]

    def test_dependencies_use_registered_kind(self, build_registry):
        registry = build_registry(
            (SERVICE, "UserSyncService", ["User", "NotificationService"]),
            (SERVICE, "NotificationService"),
        )
        affected = analytics.affected_components(registry, ["app/services/user_sync_service.rb"])
        assert affected[SERVICE] == ["UserSyncService", "NotificationService"]
        assert affected[MODEL] == ["User"]
        assert affected[CONTROLLER] == []
        assert affected[WORKER] == []

    def test_no_changes(self, build_registry):
        affected = analytics.affected_components(build_registry(), [])
        assert all(names == [] for names in affected.values())

    def test_unregistered_dependencies_are_classified_by_suffix(self, build_registry):
        registry = build_registry(
            (WORKER, "SyncWorker", ["UserSyncService", "AdminController", "ReportWorker", "Firm"]),
        )
        affected = analytics.affected_components(registry, ["app/workers/sync_worker.rb"])
        assert affected[SERVICE] == ["UserSyncService"]
        assert affected[CONTROLLER] == ["AdminController"]
        assert affected[WORKER] == ["SyncWorker", "ReportWorker"]
        assert affected[MODEL] == ["Firm"]
