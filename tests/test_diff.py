"""Tests for desired-state comparison and managed blocks."""

from stack_provisioner.engine.diff import apply_block, block_markers, compute_change


class TestComputeChange:
    def test_identical_content_is_unchanged(self):
        change = compute_change("/etc/x.conf", "a\nb\n", "a\nb\n")
        assert not change.changed
        assert change.unified_diff() == ""

    def test_missing_file_diffs_against_dev_null(self):
        change = compute_change("/etc/x.conf", None, "new\n")
        assert change.changed
        assert not change.exists
        diff = change.unified_diff()
        assert diff.startswith("--- /dev/null\n+++ /etc/x.conf\n")
        assert "+new\n" in diff

    def test_modified_line_shows_both_sides(self):
        diff = compute_change("/etc/x.conf", "port 21\n", "port 22\n").unified_diff()
        assert "-port 21\n" in diff
        assert "+port 22\n" in diff

    def test_trailing_newline_difference_counts(self):
        assert compute_change("/f", "a", "a\n").changed


class TestManagedBlocks:
    BODY = "* soft core 0\n* hard core 0\n"

    def test_block_in_missing_file_is_the_whole_file(self):
        begin, end = block_markers("limits")
        assert apply_block(None, "limits", self.BODY) == f"{begin}\n{self.BODY}{end}\n"

    def test_block_is_appended_after_existing_content(self):
        current = "# limits.conf\n#<domain> <type> <item> <value>\n"
        result = apply_block(current, "limits", self.BODY)

        assert result.startswith(current + "\n# BEGIN stack-provisioner limits\n")
        assert result.endswith("# END stack-provisioner limits\n")

    def test_reapplying_is_a_no_op(self):
        once = apply_block("existing\n", "limits", self.BODY)
        twice = apply_block(once, "limits", self.BODY)

        assert twice == once
        assert twice.count("# BEGIN stack-provisioner limits") == 1

    def test_changed_body_replaces_block_in_place(self):
        current = apply_block("before\n", "sysctl", "net.ipv4.ip_forward = 1\n") + "after\n"
        result = apply_block(current, "sysctl", "net.ipv4.ip_forward = 0\n")

        assert "net.ipv4.ip_forward = 1" not in result
        assert result.startswith("before\n")
        assert result.endswith("# END stack-provisioner sysctl\nafter\n")

    def test_blocks_with_different_names_coexist(self):
        text = apply_block(None, "one", "a = 1\n")
        text = apply_block(text, "two", "b = 2\n")
        text = apply_block(text, "one", "a = 3\n")

        assert "a = 3" in text and "a = 1" not in text
        assert "b = 2" in text
