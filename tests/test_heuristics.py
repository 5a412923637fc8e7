"""Tests for the structural heuristic detectors."""

from contractrag.analysis.heuristics import (
    HEURISTIC_DETECTORS,
    detect_balance_strict_equality,
    detect_block_number_in_branch,
    detect_call_before_effect,
    detect_delegatecall_without_guard,
    detect_ether_frozen,
    detect_timestamp_in_branch,
    detect_unprotected_critical_action,
    iter_function_bodies,
    split_statements,
)
from contractrag.knowledge import Severity

VULNERABLE_WITHDRAW = """
function withdraw() public {
    uint256 amount = balances[msg.sender];
    require(amount > 0, "No funds");
    (bool success,) = msg.sender.call{value: amount}("");
    require(success, "Transfer failed");
    balances[msg.sender] = 0;
}
"""

SAFE_WITHDRAW = """
function withdraw() public {
    uint256 amount = balances[msg.sender];
    balances[msg.sender] = 0;
    (bool success,) = msg.sender.call{value: amount}("");
    require(success, "Transfer failed");
}
"""


class TestTextHelpers:
    """Tests for statement and function body splitting."""

    def test_split_statements_multi_statement_line(self):
        """Statements are split on ';' and keep their line number."""
        statements = split_statements("a = 1; b = 2;\nc();")
        assert [s.text.strip() for s in statements] == ["a = 1", "b = 2", "c()"]
        assert [s.line for s in statements] == [1, 1, 2]
        assert [s.index for s in statements] == [0, 1, 2]

    def test_iter_function_bodies(self):
        """Function bodies are delimited by balanced braces."""
        text = (
            "contract C {\n"
            "    function a() public { if (x) { y(); } }\n"
            "    function b() external view returns (uint) { return 1; }\n"
            "}"
        )
        bodies = list(iter_function_bodies(text))
        assert [f.name for f in bodies] == ["a", "b"]
        assert bodies[0].body == "{ if (x) { y(); } }"
        assert "view" in bodies[1].header
        assert bodies[1].line == 3

    def test_iter_function_bodies_skips_declarations(self):
        """Interface declarations without a body are skipped."""
        text = "interface I {\n    function foo() external;\n}"
        assert list(iter_function_bodies(text)) == []

    def test_iter_function_bodies_special_functions(self):
        """receive() and fallback() are recognised."""
        text = "receive() external payable { x = 1; }"
        assert [f.name for f in iter_function_bodies(text)] == ["receive"]


class TestCallBeforeEffect:
    """Tests for the call-before-effect reentrancy heuristic."""

    def test_fires_when_reset_follows_call(self):
        """A balance reset after an external call fires."""
        assert detect_call_before_effect(VULNERABLE_WITHDRAW) == 1

    def test_quiet_when_reset_precedes_call(self):
        """Checks-effects-interactions ordering does not fire."""
        assert detect_call_before_effect(SAFE_WITHDRAW) == 0

    def test_single_line_ordering(self):
        """Ordering is judged per statement, so one-liners work."""
        text = '(bool success,) = msg.sender.call{value: amount}(""); balances[msg.sender] = 0;'
        assert detect_call_before_effect(text) == 1

    def test_no_reset_does_not_fire(self):
        """Without any state reset there is nothing to flag."""
        assert detect_call_before_effect('msg.sender.call{value: 1}("");') == 0

    def test_delete_and_decrement_count_as_reset(self):
        """delete and -= writes are state resets as well."""
        text = "to.transfer(amount);\nbalances[msg.sender] -= amount;\ndelete deposits[msg.sender];"
        assert detect_call_before_effect(text) == 2


class TestUnprotectedCriticalAction:
    """Tests for the unprotected critical action heuristic."""

    def test_unguarded_selfdestruct(self):
        """A public selfdestruct without a guard fires."""
        text = "function close() public {\n    selfdestruct(payable(msg.sender));\n}"
        assert detect_unprotected_critical_action(text) == 1

    def test_modifier_guard(self):
        """An only* modifier on the header counts as a guard."""
        text = "function close() public onlyOwner {\n    selfdestruct(payable(msg.sender));\n}"
        assert detect_unprotected_critical_action(text) == 0

    def test_require_guard(self):
        """A msg.sender comparison in the body counts as a guard."""
        text = (
            "function setOwner(address next) external {\n"
            '    require(msg.sender == owner, "not owner");\n'
            "    owner = next;\n"
            "}"
        )
        assert detect_unprotected_critical_action(text) == 0

    def test_sensitive_name_without_action(self):
        """A sensitive function name alone is enough to fire."""
        assert detect_unprotected_critical_action("function pause() external { paused = true; }") == 1

    def test_private_and_view_functions_ignored(self):
        """Only state-changing public/external functions are considered."""
        text = (
            "function kill() internal { selfdestruct(payable(owner)); }\n"
            "function mintable() public view returns (bool) { return true; }"
        )
        assert detect_unprotected_critical_action(text) == 0


class TestBranchHeuristics:
    """Tests for timestamp and block number dependence in branches."""

    def test_timestamp_in_require(self):
        """block.timestamp inside require fires."""
        assert detect_timestamp_in_branch("require(block.timestamp > deadline);") == 1

    def test_timestamp_assignment_only(self):
        """Reading the timestamp outside a condition does not fire."""
        assert detect_timestamp_in_branch("uint256 started = block.timestamp;") == 0

    def test_block_number_in_if(self):
        """block.number inside if fires."""
        assert detect_block_number_in_branch("if (block.number > endBlock) {") == 1


class TestDelegatecallAndEther:
    """Tests for delegatecall, balance equality and frozen Ether heuristics."""

    def test_unguarded_delegatecall(self):
        """A delegatecall in an unguarded public function fires."""
        text = "function forward(bytes memory data) public {\n    target.delegatecall(data);\n}"
        assert detect_delegatecall_without_guard(text) == 1

    def test_guarded_delegatecall(self):
        """A guarded delegatecall does not fire."""
        text = "function forward(bytes memory data) public onlyOwner {\n    target.delegatecall(data);\n}"
        assert detect_delegatecall_without_guard(text) == 0

    def test_delegatecall_snippet_without_function(self):
        """A bare snippet is treated as one body."""
        assert detect_delegatecall_without_guard("target.delegatecall(data);") == 1

    def test_balance_strict_equality(self):
        """== on the contract balance fires, >= does not."""
        assert detect_balance_strict_equality("require(address(this).balance == 1 ether);") == 1
        assert detect_balance_strict_equality("require(address(this).balance >= 1 ether);") == 0

    def test_ether_frozen(self):
        """delegatecall without any way to send Ether out fires once."""
        assert detect_ether_frozen("lib.delegatecall(msg.data);") == 1
        assert detect_ether_frozen("lib.delegatecall(msg.data);\npayable(owner).transfer(x);") == 0


class TestDetectorTable:
    """Tests for the registered detector list."""

    def test_detector_ids_unique(self):
        """Detector ids are unique."""
        ids = [d.id for d in HEURISTIC_DETECTORS]
        assert len(ids) == len(set(ids))

    def test_call_before_effect_is_critical_reentrancy(self):
        """The call-before-effect detector reports a critical reentrancy finding."""
        detector = next(d for d in HEURISTIC_DETECTORS if d.id == "call_before_effect")
        assert detector.severity is Severity.CRITICAL
        assert "Reentrancy" in detector.description

    def test_detectors_quiet_on_empty_text(self):
        """No detector fires on empty input."""
        assert all(d.run("") == 0 for d in HEURISTIC_DETECTORS)
