"""Unit tests for result aggregation."""

from apex_orchestrator.models.plan import Step
from apex_orchestrator.models.results import StepResult, StepStatus
from apex_orchestrator.orchestration.aggregator import aggregate


def result(step_id, status, stage, output=None, capability=None, started=100.0, finished=101.0):
    return StepResult(
        step=Step(id=step_id, capability=capability or step_id),
        status=status,
        output=output,
        stage_index=stage,
        started_at=started,
        finished_at=finished,
        attempts=1 if status != StepStatus.SKIPPED else 0
    )


class TestAggregate:
    """Test output selection, success and provenance."""

    def test_single_final_output(self):
        results = [
            result("inference", StepStatus.SUCCEEDED, 0, {"response": "code"}, finished=101.0),
            result("execution", StepStatus.SUCCEEDED, 1, {"output": "3"}, started=101.0, finished=102.0),
        ]

        aggregated = aggregate(results)

        assert aggregated.success is True
        assert aggregated.output == {"output": "3"}
        assert aggregated.tools_used == ["inference", "execution"]
        assert aggregated.processing_time_ms == 2000
        assert aggregated.metadata["succeeded"] == 2

    def test_multiple_final_outputs_keyed_by_capability(self):
        results = [
            result("inference", StepStatus.SUCCEEDED, 0, "text"),
            result("storage", StepStatus.SUCCEEDED, 1, {"page_id": "p"}),
            result("peers", StepStatus.SUCCEEDED, 1, {"delivered": 2}),
        ]

        aggregated = aggregate(results)

        assert aggregated.output == {"storage": {"page_id": "p"}, "peers": {"delivered": 2}}

    def test_name_collision_uses_step_ids(self):
        results = [
            result("s1", StepStatus.SUCCEEDED, 0, "a", capability="inference"),
            result("s2", StepStatus.SUCCEEDED, 0, "b", capability="inference"),
        ]

        aggregated = aggregate(results)

        assert aggregated.output == {"inference:s1": "a", "inference:s2": "b"}
        assert aggregated.tools_used == ["inference"]

    def test_final_stage_failure_gives_partial_output(self):
        results = [
            result("inference", StepStatus.SUCCEEDED, 0, "code"),
            result("execution", StepStatus.FAILED, 1),
        ]

        aggregated = aggregate(results)

        assert aggregated.success is False
        assert aggregated.output == {"inference": "code"}
        assert aggregated.metadata["partial"] is True
        assert aggregated.tools_used == ["inference"]
        assert len(aggregated.step_results) == 2

    def test_no_success_at_all(self):
        results = [
            result("inference", StepStatus.TIMED_OUT, 0),
            result("execution", StepStatus.SKIPPED, 1),
        ]

        aggregated = aggregate(results)

        assert aggregated.success is False
        assert aggregated.output is None
        assert aggregated.tools_used == []
        assert aggregated.metadata["timed_out"] == 1
        assert aggregated.metadata["skipped"] == 1

    def test_tools_used_in_order_of_first_success(self):
        results = [
            result("a", StepStatus.SUCCEEDED, 0, finished=105.0),
            result("b", StepStatus.SUCCEEDED, 0, finished=102.0),
            result("c", StepStatus.FAILED, 0, finished=101.0),
            result("d", StepStatus.SUCCEEDED, 1, started=105.0, finished=106.0),
        ]

        assert aggregate(results).tools_used == ["b", "a", "d"]

    def test_tools_used_membership(self):
        results = [
            result("a", StepStatus.SUCCEEDED, 0),
            result("b", StepStatus.FAILED, 0),
            result("c", StepStatus.SKIPPED, 1),
        ]
        aggregated = aggregate(results)

        succeeded = {r.capability for r in results if r.status == StepStatus.SUCCEEDED}
        assert set(aggregated.tools_used) == succeeded

    def test_explicit_timestamps_define_processing_time(self):
        results = [result("inference", StepStatus.SUCCEEDED, 0, "x")]

        aggregated = aggregate(results, started_at=99.0, completed_at=101.5, session_id="s-1")

        assert aggregated.processing_time_ms == 2500
        assert aggregated.session_id == "s-1"

    def test_idempotent(self):
        results = [
            result("inference", StepStatus.SUCCEEDED, 0, {"response": "r"}),
            result("execution", StepStatus.FAILED, 1),
            result("storage", StepStatus.SKIPPED, 2),
        ]

        first = aggregate(results, started_at=100.0, completed_at=103.0)
        second = aggregate(results, started_at=100.0, completed_at=103.0)

        assert first == second
        assert aggregate(results) == aggregate(results)

    def test_empty(self):
        aggregated = aggregate([])
        assert aggregated.success is False
        assert aggregated.output is None
        assert aggregated.processing_time_ms == 0

    def test_response_uses_stable_field_names(self):
        aggregated = aggregate([result("inference", StepStatus.SUCCEEDED, 0, "x")])

        response = aggregated.to_response()

        assert {"success", "output", "toolsUsed", "processingTimeMs", "stepResults"} <= set(response)
        assert aggregated.to_audit_record() == {
            "success": True,
            "output": "x",
            "toolsUsed": ["inference"],
            "processingTimeMs": 1000,
        }
