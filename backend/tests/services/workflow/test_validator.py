"""Tests for structural connection validation."""

import pytest

from graphpatch.services.workflow.validator import collect_connection_issues, is_valid_target_index

NAMES = ["A", "B", "C"]


def _codes(issues) -> list[str]:
    return [issue.issue for issue in issues]


class TestIsValidTargetIndex:
    """Tests for target index validation."""

    @pytest.mark.parametrize("value", [0, 3, 2.0, "1", " 4 "])
    def test_valid(self, value) -> None:
        """Test non-negative integral values, including integral strings."""
        assert is_valid_target_index(value) is True

    @pytest.mark.parametrize("value", [-1, 1.5, "-1", "1.5", "first", None, True])
    def test_invalid(self, value) -> None:
        """Test negatives, fractions, other strings, None and booleans."""
        assert is_valid_target_index(value) is False


class TestCollectConnectionIssues:
    """Tests for collect_connection_issues."""

    def test_sound_map_has_no_issues(self) -> None:
        """Test a valid map."""
        connections = {
            "A": {"main": [[{"node": "B", "type": "main", "index": 0}], [{"node": "C"}]]},
            "B": {"main": [[{"node": "C", "type": "main", "index": 1}]]},
        }
        assert collect_connection_issues(connections, NAMES) == []

    def test_non_object_map_is_empty(self) -> None:
        """Test that a missing map reports nothing."""
        assert collect_connection_issues(None, NAMES) == []

    def test_unknown_source(self) -> None:
        """Test source_node_missing."""
        issues = collect_connection_issues({"Ghost": {"main": [[{"node": "A"}]]}}, NAMES)
        assert _codes(issues) == ["source_node_missing"]
        assert "Ghost" in issues[0].detail

    def test_unknown_target(self) -> None:
        """Test target_node_missing."""
        issues = collect_connection_issues({"A": {"main": [[{"node": "Ghost", "index": 0}]]}}, NAMES)
        assert _codes(issues) == ["target_node_missing"]
        assert issues[0].detail == "A.main[0] references missing target node: Ghost"

    def test_empty_target(self) -> None:
        """Test missing_target_node."""
        issues = collect_connection_issues({"A": {"main": [[{"node": "  ", "index": 0}]]}}, NAMES)
        assert _codes(issues) == ["missing_target_node"]

    def test_non_list_bucket(self) -> None:
        """Test malformed_output_bucket for a bucket."""
        issues = collect_connection_issues({"A": {"main": [{"node": "B"}]}}, NAMES)
        assert _codes(issues) == ["malformed_output_bucket"]
        assert issues[0].detail == "A.main[0] is not an array"

    def test_non_list_type_entry(self) -> None:
        """Test malformed_output_bucket for the whole type entry."""
        issues = collect_connection_issues({"A": {"main": "B"}}, NAMES)
        assert _codes(issues) == ["malformed_output_bucket"]

    def test_invalid_index(self) -> None:
        """Test invalid_target_index."""
        issues = collect_connection_issues({"A": {"main": [[{"node": "B", "index": -1}]]}}, NAMES)
        assert _codes(issues) == ["invalid_target_index"]

    def test_null_index_means_zero(self) -> None:
        """Test that a null index is accepted."""
        assert collect_connection_issues({"A": {"main": [[{"node": "B", "index": None}]]}}, NAMES) == []

    def test_object_shaped_buckets_are_walked(self) -> None:
        """Test that {"0": [...]} buckets are checked like arrays."""
        issues = collect_connection_issues({"A": {"main": {"0": [{"node": "Ghost"}]}}}, NAMES)
        assert _codes(issues) == ["target_node_missing"]

    def test_reports_every_issue(self) -> None:
        """Test that validation does not stop at the first problem."""
        connections = {
            "Ghost": {"main": [[{"node": "A"}]]},
            "A": {"main": [[{"node": "Nobody"}, {"node": "B", "index": 1.5}], "bad"]},
        }
        assert _codes(collect_connection_issues(connections, NAMES)) == [
            "source_node_missing",
            "target_node_missing",
            "invalid_target_index",
            "malformed_output_bucket",
        ]

    def test_non_object_type_map(self) -> None:
        """Test that a source entry that is not an object is malformed."""
        issues = collect_connection_issues({"B": ["not", "a", "type", "map"]}, NAMES)
        assert _codes(issues) == ["malformed_output_bucket"]
        assert issues[0].detail == "B is not an object of connection types"

    def test_non_object_edge(self) -> None:
        """Test that null or scalar edges are reported."""
        issues = collect_connection_issues({"A": {"main": [[None, {"node": "B"}, "C"]]}}, NAMES)
        assert _codes(issues) == ["missing_target_node", "missing_target_node"]
        assert issues[0].detail == "A.main[0] edge is not an object"

    def test_sparse_object_buckets_report_real_slot(self) -> None:
        """Test that slot-keyed buckets are located by their slot."""
        issues = collect_connection_issues(
            {"A": {"main": {"0": [{"node": "B"}], "2": [{"node": "Ghost"}]}}}, NAMES
        )
        assert issues[0].detail == "A.main[2] references missing target node: Ghost"

    def test_numeric_string_index_is_accepted(self) -> None:
        """Test that "1" is a valid target index."""
        assert collect_connection_issues({"A": {"main": [[{"node": "B", "index": "1"}]]}}, NAMES) == []
