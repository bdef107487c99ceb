from expense_approval.models.expense import ApprovalStep, EdgeType, StepStatus
from expense_approval.workflow.graph import build_workflow_graph

def test_empty_chain_has_empty_graph():
    graph = build_workflow_graph([])
    assert graph.nodes == []
    assert graph.edges == []

def test_serial_and_parallel_edges():
    steps = [
        ApprovalStep(level=1, role="manager"),
        ApprovalStep(level=2, role="financeA", parallel_group_id="g1"),
        ApprovalStep(level=2, role="financeB", parallel_group_id="g1"),
        ApprovalStep(level=3, role="executive"),
    ]
    graph = build_workflow_graph(steps)

    assert [n.id for n in graph.nodes] == ["1-0", "2-g1-1", "2-g1-2", "3-3"]
    assert [e.type for e in graph.edges] == [EdgeType.SERIAL, EdgeType.PARALLEL, EdgeType.SERIAL]
    assert graph.edges[1].from_node == "2-g1-1"
    assert graph.edges[1].to_node == "2-g1-2"

def test_two_single_steps_are_serial():
    steps = [ApprovalStep(level=1, role="manager"), ApprovalStep(level=2, role="finance")]
    graph = build_workflow_graph(steps)
    assert graph.edges[0].type == EdgeType.SERIAL

def test_nodes_carry_status_and_metadata():
    step = ApprovalStep(level=1, role="manager", status=StepStatus.APPROVED, auto_approved=True,
                        required_approvals=2, approvals_received=2)
    node = build_workflow_graph([step]).nodes[0]
    assert node.label == "manager"
    assert node.status == StepStatus.APPROVED
    assert node.metadata["auto_approved"] is True
    assert node.metadata["approvals_received"] == 2

def test_edges_serialize_with_from_and_to_keys():
    steps = [ApprovalStep(level=1, role="a"), ApprovalStep(level=2, role="b")]
    edge = build_workflow_graph(steps).model_dump(by_alias=True)["edges"][0]
    assert edge["from"] == "1-0"
    assert edge["to"] == "2-1"
