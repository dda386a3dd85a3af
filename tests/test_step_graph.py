"""Tests for the step dependency graph."""

import pytest

from numenera_chargen.graph.step_graph import StepGraph
from numenera_chargen.models.constants import Step


class TestStepGraph:
    def test_type_invalidates_downstream(self):
        graph = StepGraph.build()
        assert graph.invalidated_by(Step.TYPE_SELECT) == [
            Step.FOCUS_SELECT,
            Step.STAT_ALLOCATION,
            Step.ABILITY_SELECT,
            Step.CYPHER_SELECT,
            Step.EQUIPMENT_SHOP,
        ]

    def test_origin_invalidates_stats_and_shop(self):
        graph = StepGraph.build()
        assert graph.invalidated_by(Step.ORIGIN_SELECT) == [
            Step.STAT_ALLOCATION, Step.EQUIPMENT_SHOP,
        ]

    def test_leaf_steps(self):
        graph = StepGraph.build()
        for step in (Step.NAME_ENTRY, Step.ODDITY_SELECT, Step.EQUIPMENT_SHOP):
            assert graph.invalidated_by(step) == []

    def test_transitive(self):
        graph = StepGraph.build({
            Step.NAME_ENTRY: [Step.GENDER_SELECT],
            Step.GENDER_SELECT: [Step.ODDITY_SELECT],
        })
        assert graph.invalidated_by(Step.NAME_ENTRY) == [Step.GENDER_SELECT, Step.ODDITY_SELECT]

    def test_prerequisites(self):
        graph = StepGraph.build()
        assert set(graph.prerequisites_of(Step.EQUIPMENT_SHOP)) == {
            Step.TYPE_SELECT, Step.ORIGIN_SELECT,
        }

    def test_backward_edge_rejected(self):
        with pytest.raises(ValueError, match="earlier step"):
            StepGraph.build({Step.FOCUS_SELECT: [Step.TYPE_SELECT]})

    def test_topological_order_covers_every_step(self):
        order = StepGraph.build().topological_order()
        assert sorted(order) == list(Step)
        assert order.index(Step.TYPE_SELECT) < order.index(Step.FOCUS_SELECT)
        assert order.index(Step.ORIGIN_SELECT) < order.index(Step.EQUIPMENT_SHOP)
