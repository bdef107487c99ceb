from typing import List

from expense_approval.models.expense import ApprovalStep, EdgeType, GraphEdge, GraphNode, WorkflowGraph

def node_id(step: ApprovalStep, index: int) -> str:
    if step.parallel_group_id:
        return f"{step.level}-{step.parallel_group_id}-{index}"
    return f"{step.level}-{index}"

def build_workflow_graph(steps: List[ApprovalStep]) -> WorkflowGraph:
    """
    Projects the step list into nodes and edges. One node per step, one edge
    per adjacent pair: parallel when both share a group, serial otherwise.
    """
    nodes: List[GraphNode] = []
    edges: List[GraphEdge] = []

    for index, step in enumerate(steps):
        current_id = node_id(step, index)
        nodes.append(GraphNode(
            id=current_id,
            label=step.role,
            status=step.status,
            metadata={
                "level": step.level,
                "required_approvals": step.required_approvals,
                "approvals_received": step.approvals_received,
                "auto_approved": step.auto_approved,
                "is_escalated": step.is_escalated,
            }
        ))

        if index > 0:
            previous = steps[index - 1]
            same_group = bool(step.parallel_group_id) and step.parallel_group_id == previous.parallel_group_id
            edges.append(GraphEdge(
                from_node=node_id(previous, index - 1),
                to_node=current_id,
                type=EdgeType.PARALLEL if same_group else EdgeType.SERIAL
            ))

    return WorkflowGraph(nodes=nodes, edges=edges)
