"""Angular positions for fan (radial) charts."""

from collections.abc import Iterable, Mapping


def calculate_fan_layout(node_ids: Iterable[str], generations: Mapping[str, int]) -> dict[str, float]:
    """
    Spread each generation's nodes evenly around a full circle.

    Generation g with k nodes places its i-th node (in ``node_ids`` order) at
    ``i * 360 / k`` degrees, so every ring starts at 0. A node with no
    generation counts as generation 0; negative generations are not placed.

    Example:
        calculate_fan_layout(["a", "b", "c"], {"a": 0, "b": 1, "c": 1})
        # {"b": 0.0, "c": 180.0, "a": 0.0}
    """
    nodes_by_generation: dict[int, list[str]] = {}
    for node_id in node_ids:
        generation = generations.get(node_id) or 0
        nodes_by_generation.setdefault(generation, []).append(node_id)

    if not nodes_by_generation:
        return {}

    angles: dict[str, float] = {}
    # Outer rings first
    for generation in range(max(nodes_by_generation), -1, -1):
        nodes = nodes_by_generation.get(generation, [])
        step = 360 / max(1, len(nodes))
        for index, node_id in enumerate(nodes):
            angles[node_id] = (index * step) % 360
    return angles
