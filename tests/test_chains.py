"""tests for linear chain extraction."""

from branchform.core.chains import (
    draggable_ids,
    get_linear_chain,
    is_draggable,
    list_chains,
)
from branchform.core.models import FormGraph, TextStep


class TestGetLinearChain:
    """tests for get_linear_chain."""

    def test_fixture_chain(self, sample_graph):
        """the run stops at and includes the choice step."""
        assert get_linear_chain(sample_graph, "Q1") == ["Q1", "Q2", "C1"]

    def test_chain_from_branch(self, sample_graph):
        assert get_linear_chain(sample_graph, "Q3") == ["Q3"]

    def test_ends_at_null_next(self, linear_graph):
        assert get_linear_chain(linear_graph, "B") == ["B", "C", "D"]

    def test_ends_at_conclusion(self, shop_graph):
        assert get_linear_chain(shop_graph, "end") == ["end"]

    def test_quantity_is_linear(self, shop_graph):
        assert get_linear_chain(shop_graph, "name") == ["name", "cart", "more"]

    def test_stops_before_visited(self, linear_graph):
        """a visited next id is not included."""
        visited = {"C"}
        assert get_linear_chain(linear_graph, "A", visited) == ["A", "B"]
        assert visited == {"C"}

    def test_cycle_has_no_duplicates(self):
        graph = FormGraph(
            root_step_id="a",
            steps={
                "a": TextStep(id="a", question="a", next_step_id="b"),
                "b": TextStep(id="b", question="b", next_step_id="a"),
            },
        )
        assert get_linear_chain(graph, "a") == ["a", "b"]

    def test_self_loop(self):
        graph = FormGraph(
            root_step_id="a",
            steps={"a": TextStep(id="a", question="a", next_step_id="a")},
        )
        assert get_linear_chain(graph, "a") == ["a"]

    def test_missing_start(self, sample_graph):
        assert get_linear_chain(sample_graph, "nope") == []

    def test_dangling_next(self):
        graph = FormGraph(
            root_step_id="a",
            steps={"a": TextStep(id="a", question="a", next_step_id="gone")},
        )
        assert get_linear_chain(graph, "a") == ["a"]


class TestDraggable:
    """tests for draggable subset."""

    def test_choice_not_draggable(self, sample_graph):
        chain = get_linear_chain(sample_graph, "Q1")
        assert draggable_ids(sample_graph, chain) == ["Q1", "Q2"]

    def test_conclusion_not_draggable(self, shop_graph):
        assert not is_draggable(shop_graph, "end")
        assert is_draggable(shop_graph, "cart")
        assert not is_draggable(shop_graph, "nope")


class TestListChains:
    """tests for decomposing a graph into chains."""

    def test_fixture(self, sample_graph):
        assert list_chains(sample_graph) == [["Q1", "Q2", "C1"], ["Q3"]]

    def test_loop_back_is_not_a_new_chain(self, shop_graph):
        assert list_chains(shop_graph) == [["name", "cart", "more"], ["end"]]

    def test_every_step_in_one_chain(self, shop_graph):
        chains = list_chains(shop_graph)
        flat = [sid for chain in chains for sid in chain]
        assert len(flat) == len(set(flat))

    def test_empty_graph(self):
        assert list_chains(FormGraph()) == []
