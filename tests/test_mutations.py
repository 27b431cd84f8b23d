"""tests for structural edits."""

import pytest

from branchform.core.models import (
    Choice,
    ChoiceStep,
    FormGraph,
    InfoPopup,
    QuantityChoice,
    StepType,
    TextStep,
)
from branchform.core.mutations import (
    add_choice,
    add_quantity_choice,
    add_step,
    append_image,
    create_first_step,
    delete_choice,
    delete_quantity_choice,
    delete_step,
    update_choice,
    update_quantity_choice,
    update_step,
)
from branchform.core.traversal import orphan_ids


class TestCreateFirstStep:
    """tests for starting an empty form."""

    def test_empty_graph_gets_root(self):
        graph, step_id = create_first_step(FormGraph(), StepType.CHOICE)
        assert graph.root_step_id == step_id
        assert graph.steps[step_id].type == StepType.CHOICE

    def test_non_empty_graph_unchanged(self, sample_graph):
        graph, step_id = create_first_step(sample_graph, StepType.TEXT)
        assert graph is sample_graph
        assert step_id is None


class TestAddStep:
    """tests for add_step."""

    def test_after_text_with_no_next(self, sample_graph):
        """the parent points at the new step, which points nowhere."""
        result, new_id = add_step(sample_graph, "Q3", StepType.TEXT)
        assert result.steps["Q3"].next_step_id == new_id
        assert result.steps[new_id].next_step_id is None
        assert sample_graph.steps["Q3"].next_step_id is None

    def test_wires_choice(self, sample_graph):
        result, new_id = add_step(sample_graph, "C1", StepType.CONCLUSION, choice_id="no")
        assert result.steps["C1"].get_choice("no").next_step_id == new_id
        assert result.steps[new_id].type == StepType.CONCLUSION

    def test_unknown_choice_leaves_step_unwired(self, sample_graph):
        result, new_id = add_step(sample_graph, "C1", StepType.TEXT, choice_id="maybe")
        assert new_id in result.steps
        assert new_id in orphan_ids(result)

    def test_overwrites_existing_successor(self, sample_graph):
        """the previous successor is left in the map, unreachable."""
        result, new_id = add_step(sample_graph, "Q1", StepType.TEXT)
        assert result.steps["Q1"].next_step_id == new_id
        assert "Q2" in result.steps
        assert "Q2" in orphan_ids(result)

    def test_after_conclusion_not_wired(self, shop_graph):
        result, new_id = add_step(shop_graph, "end", StepType.TEXT)
        assert new_id in result.steps
        assert result.steps["end"].outgoing_ids() == []

    def test_missing_parent(self, sample_graph):
        result, new_id = add_step(sample_graph, "nope", StepType.TEXT)
        assert result is sample_graph
        assert new_id is None

    def test_ids_are_unique(self, sample_graph):
        graph = sample_graph
        ids = set()
        for _ in range(20):
            graph, new_id = add_step(graph, "Q3", StepType.TEXT)
            ids.add(new_id)
        assert len(ids) == 20


class TestUpdateStep:
    """tests for update_step."""

    def test_merges_fields(self, sample_graph):
        result = update_step(sample_graph, "Q1", question="Full name?", placeholder="Jane")
        assert result.steps["Q1"].question == "Full name?"
        assert result.steps["Q1"].placeholder == "Jane"
        assert result.steps["Q1"].next_step_id == "Q2"
        assert sample_graph.steps["Q1"].question == "Your name?"

    def test_id_and_type_ignored(self, sample_graph):
        result = update_step(sample_graph, "Q1", id="other", type="choice", question="x")
        step = result.steps["Q1"]
        assert step.id == "Q1"
        assert step.type == StepType.TEXT

    def test_missing_step(self, sample_graph):
        assert update_step(sample_graph, "nope", question="x") is sample_graph

    def test_unknown_field_raises(self, sample_graph):
        with pytest.raises(TypeError):
            update_step(sample_graph, "C1", placeholder="x")

    def test_rejects_too_few_choices(self, sample_graph):
        only = [Choice(id="yes", label="Yes", next_step_id="Q3")]
        assert update_step(sample_graph, "C1", choices=only) is sample_graph

    def test_rejects_empty_quantity(self, shop_graph):
        assert update_step(shop_graph, "cart", quantity_choices=[]) is shop_graph

    def test_rejects_negative_price(self, shop_graph):
        items = [QuantityChoice(id="x", label="x", price=-1)]
        assert update_step(shop_graph, "cart", quantity_choices=items) is shop_graph

    def test_rejects_dangling_pointer(self, sample_graph):
        assert update_step(sample_graph, "Q3", next_step_id="gone") is sample_graph

    def test_rejects_null_question(self, sample_graph):
        assert update_step(sample_graph, "Q2", question=None) is sample_graph

    def test_rejects_null_conclusion_text(self, shop_graph):
        assert update_step(shop_graph, "end", thank_you_message=None) is shop_graph
        assert update_step(shop_graph, "end", submit_button_text=None) is shop_graph

    def test_rejects_null_choices(self, sample_graph):
        assert update_step(sample_graph, "C1", choices=None) is sample_graph

    def test_allows_null_placeholder(self, sample_graph):
        result = update_step(sample_graph, "Q1", placeholder=None)
        assert result is not sample_graph
        assert result.steps["Q1"].placeholder is None

    def test_allows_clearing_pointer(self, sample_graph):
        result = update_step(sample_graph, "Q1", next_step_id=None)
        assert result.steps["Q1"].next_step_id is None

    def test_result_shares_nothing_with_arguments(self, sample_graph):
        choices = [Choice(id="a", label="A"), Choice(id="b", label="B")]
        result = update_step(sample_graph, "C1", choices=choices)
        choices[0].label = "mutated"
        assert result.steps["C1"].choices[0].label == "A"


class TestDeleteStep:
    """tests for delete_step."""

    def test_root_is_never_deleted(self, sample_graph):
        assert delete_step(sample_graph, "Q1") is sample_graph

    def test_missing_step(self, sample_graph):
        assert delete_step(sample_graph, "nope") is sample_graph

    def test_nulls_inbound_pointer(self, sample_graph):
        result = delete_step(sample_graph, "Q3")
        assert "Q3" not in result.steps
        assert result.steps["C1"].get_choice("yes").next_step_id is None
        assert "Q3" in sample_graph.steps

    def test_nulls_both_choice_references(self):
        graph = FormGraph(
            root_step_id="c",
            steps={
                "c": ChoiceStep(
                    id="c",
                    question="pick",
                    choices=[
                        Choice(id="1", label="one", next_step_id="x"),
                        Choice(id="2", label="two", next_step_id="x"),
                    ],
                ),
                "x": TextStep(id="x", question="shared"),
            },
        )
        result = delete_step(graph, "x")
        assert [c.next_step_id for c in result.steps["c"].choices] == [None, None]

    def test_no_dangling_pointers_left(self, shop_graph):
        result = delete_step(shop_graph, "cart")
        for step in result.steps.values():
            assert all(next_id in result.steps for next_id in step.outgoing_ids())


class TestChoiceEditing:
    """tests for per-choice edits."""

    def test_add_choice(self, sample_graph):
        result = add_choice(sample_graph, "C1", "Maybe")
        assert [c.label for c in result.steps["C1"].choices] == ["Yes", "No", "Maybe"]

    def test_add_choice_on_text_step(self, sample_graph):
        assert add_choice(sample_graph, "Q1") is sample_graph

    def test_update_choice(self, sample_graph):
        result = update_choice(sample_graph, "C1", "no", label="Nope", next_step_id="Q1")
        choice = result.steps["C1"].get_choice("no")
        assert choice.label == "Nope"
        assert choice.next_step_id == "Q1"

    def test_update_choice_dangling(self, sample_graph):
        assert update_choice(sample_graph, "C1", "no", next_step_id="gone") is sample_graph

    def test_delete_choice_respects_minimum(self, sample_graph):
        assert delete_choice(sample_graph, "C1", "no") is sample_graph

    def test_delete_choice(self, sample_graph):
        graph = add_choice(sample_graph, "C1", "Maybe")
        result = delete_choice(graph, "C1", "no")
        assert [c.id for c in result.steps["C1"].choices][:1] == ["yes"]
        assert len(result.steps["C1"].choices) == 2


class TestQuantityEditing:
    """tests for quantity item edits."""

    def test_add_item(self, shop_graph):
        result = add_quantity_choice(shop_graph, "cart", "Coffee", price=5)
        labels = [qc.label for qc in result.steps["cart"].quantity_choices]
        assert labels == ["Tea", "No thanks", "Coffee"]

    def test_no_thanks_zeroes_price_and_limit(self, shop_graph):
        result = update_quantity_choice(shop_graph, "cart", "tea", is_no_thanks=True)
        tea = result.steps["cart"].quantity_choices[0]
        assert tea.is_no_thanks
        assert tea.price == 0
        assert tea.limit is None

    def test_update_missing_item(self, shop_graph):
        assert update_quantity_choice(shop_graph, "cart", "nope", price=1) is shop_graph

    def test_delete_last_item_rejected(self, shop_graph):
        graph = delete_quantity_choice(shop_graph, "cart", "none")
        assert len(graph.steps["cart"].quantity_choices) == 1
        assert delete_quantity_choice(graph, "cart", "tea") is graph


class TestAppendImage:
    """tests for attaching uploaded images."""

    def test_creates_popup(self, sample_graph):
        result = append_image(sample_graph, "Q1", "/objects/uploads/1-a.png")
        assert result.steps["Q1"].info_popup.images == ["/objects/uploads/1-a.png"]
        assert sample_graph.steps["Q1"].info_popup is None

    def test_appends_to_existing(self, sample_graph):
        sample_graph.steps["Q2"].info_popup = InfoPopup(enabled=True, images=["/a"])
        result = append_image(sample_graph, "Q2", "/b")
        assert result.steps["Q2"].info_popup.images == ["/a", "/b"]
        assert sample_graph.steps["Q2"].info_popup.images == ["/a"]

    def test_missing_step(self, sample_graph):
        assert append_image(sample_graph, "nope", "/a") is sample_graph
