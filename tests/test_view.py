"""Tests for the view transform and canvas state."""

import pytest

from callgraph.analysis.graph import Graph
from callgraph.geometry import Point
from callgraph.parser.base import Function
from callgraph.view.canvas import Canvas, EdgeDirection
from callgraph.view.transform import ViewTransform

VIEWPORT = (800.0, 600.0)


class TestViewTransform:
    """Tests for the camera mapping."""

    def setup_method(self):
        self.transform = ViewTransform()

    def test_identity_maps_unit_square_to_viewport(self):
        assert self.transform.to_device(Point(0.5, 0.25), VIEWPORT) == Point(400.0, 150.0)

    def test_to_device_formula(self):
        transform = ViewTransform(origin=Point(10.0, -20.0), zoom_x=2.0, zoom_y=0.5)

        assert transform.to_device(Point(0.5, 0.5), VIEWPORT) == Point(2.0 * 0.5 * 800 - 10.0, 0.5 * 0.5 * 600 + 20.0)

    @pytest.mark.parametrize("point", [Point(0.5, 0.5), Point(0.1, 0.9), Point(0.73, 0.2)])
    @pytest.mark.parametrize("fx, fy", [(1.25, 1.25), (0.8, 0.8), (2.0, 0.5), (1.0, 3.0)])
    def test_zoom_keeps_the_anchor_in_place(self, point, fx, fy):
        self.transform.pan_by(Point(37.0, -12.0))
        anchor = self.transform.to_device(point, VIEWPORT)

        self.transform.zoom_at(anchor, fx, fy)

        assert self.transform.to_device(point, VIEWPORT) == pytest.approx(anchor)

    def test_repeated_zooms_do_not_drift(self):
        point = Point(0.3, 0.6)
        anchor = self.transform.to_device(point, VIEWPORT)

        for factor in (1.25, 1.25, 0.8, 1.25, 0.8, 0.8, 2.0, 0.5):
            self.transform.zoom_at(anchor, factor, factor)

        assert self.transform.to_device(point, VIEWPORT) == pytest.approx(anchor)
        assert self.transform.zoom_x == pytest.approx(1.0)

    def test_pan_moves_origin_opposite_to_pointer(self):
        self.transform.pan_by(Point(15.0, -5.0))

        assert self.transform.origin == Point(-15.0, 5.0)
        assert self.transform.to_device(Point(0.0, 0.0), VIEWPORT) == Point(15.0, -5.0)

    def test_reset(self):
        self.transform.zoom_at(Point(100.0, 100.0), 2.0, 3.0)
        self.transform.pan_by(Point(1.0, 1.0))

        self.transform.reset()

        assert self.transform.origin == Point(0.0, 0.0)
        assert (self.transform.zoom_x, self.transform.zoom_y) == (1.0, 1.0)

    def test_to_graph_inverts_to_device(self):
        self.transform.zoom_at(Point(120.0, 80.0), 1.5, 0.75)
        self.transform.pan_by(Point(-9.0, 4.0))
        point = Point(0.42, 0.17)

        device = self.transform.to_device(point, VIEWPORT)

        assert self.transform.to_graph(device, VIEWPORT) == pytest.approx(point)

    def test_non_positive_factor_is_rejected(self):
        with pytest.raises(ValueError):
            self.transform.zoom_at(Point(0.0, 0.0), 0.0, 1.0)


def _function(name: str, access: str = "public") -> Function:
    return Function(name=name, file_path=f"/src/{name}.py", start_line=1, access=access)


class TestCanvas:
    """Tests for the interactive canvas state."""

    def setup_method(self):
        self.main = _function("main")
        self.load = _function("load", access="protected")
        self.parse = _function("parse", access="private")
        self.loop = _function("loop")

        graph = Graph()
        for f in (self.main, self.load, self.parse, self.loop):
            graph.add_node(f)
        self.main_to_load = graph.add_edge(self.main, self.load)
        self.load_to_parse = graph.add_edge(self.load, self.parse)
        self.self_loop = graph.add_edge(self.loop, self.loop)

        points = {
            self.main: Point(0.5, 0.5),
            self.load: Point(0.6, 0.6),
            self.parse: Point(0.7, 0.5),
            self.loop: Point(0.5, 0.8),
        }
        for function, point in points.items():
            node = graph.node_for(function)
            node.raw_layout_point = point
            node.point = point

        self.graph = graph
        self.canvas = Canvas(inset=0.1)
        self.canvas.reset(graph)

    def node(self, function):
        return self.graph.node_for(function)

    def test_reset_shows_everything(self):
        self.canvas.zoom_at(Point(10.0, 10.0), 2.0, 2.0)
        self.canvas.set_hovered(self.node(self.main))

        self.canvas.reset(self.graph)

        assert len(self.canvas.visible_nodes) == 4
        assert len(self.canvas.visible_edges) == 3
        assert self.canvas.hovered is None
        assert self.canvas.transform.zoom_x == 1.0

    def test_fit_to_view_stretches_raw_layout(self):
        self.canvas.zoom_at(Point(10.0, 10.0), 2.0, 2.0)

        self.canvas.fit_to_view()

        assert self.node(self.main).point == pytest.approx(Point(0.1, 0.1))
        assert self.node(self.parse).point == pytest.approx(Point(0.9, 0.1))
        assert self.node(self.loop).point == pytest.approx(Point(0.1, 0.9))
        assert self.canvas.transform.zoom_x == 1.0

    def test_fit_to_best_ratio_restores_raw_layout(self):
        self.canvas.fit_to_view()

        self.canvas.fit_to_best_ratio()

        assert self.node(self.load).point == Point(0.6, 0.6)
        assert self.canvas.transform.origin == Point(0.0, 0.0)

    def test_wheel_zoom(self):
        self.canvas.zoom_by_wheel(Point(400.0, 300.0), rotation=-1)
        assert self.canvas.transform.zoom_x == pytest.approx(1.25)

        self.canvas.zoom_by_wheel(Point(400.0, 300.0), rotation=2)
        assert self.canvas.transform.zoom_y == pytest.approx(1.25 ** -1)

    def test_drag_pans_by_pointer_delta(self):
        before = self.canvas.to_device(Point(0.5, 0.5), VIEWPORT)

        self.canvas.begin_drag(Point(100.0, 100.0))
        self.canvas.drag_to(Point(110.0, 95.0))
        self.canvas.drag_to(Point(130.0, 90.0))
        self.canvas.end_drag()

        assert self.canvas.to_device(Point(0.5, 0.5), VIEWPORT) == before + Point(30.0, -10.0)

    def test_node_at(self):
        device = self.canvas.to_device(self.node(self.load).point, VIEWPORT)

        assert self.canvas.node_at(device + Point(3.0, 0.0), VIEWPORT) is self.node(self.load)
        assert self.canvas.node_at(device + Point(30.0, 0.0), VIEWPORT) is None

    def test_hidden_nodes_cannot_be_hit(self):
        self.canvas.set_visibility(lambda node: node.function is not self.load)
        device = self.canvas.to_device(self.node(self.load).point, VIEWPORT)

        assert self.canvas.node_at(device, VIEWPORT) is None

    def test_access_filter_hides_nodes_and_their_edges(self):
        self.canvas.set_access_filter({"public", "protected"})

        visible = {node.function for node in self.canvas.visible_nodes}
        assert visible == {self.main, self.load, self.loop}
        assert set(map(id, self.canvas.visible_edges)) == {id(self.main_to_load), id(self.self_loop)}

    def test_hidden_hovered_node_is_cleared(self):
        self.canvas.set_hovered(self.node(self.parse))

        self.canvas.set_access_filter({"public"})

        assert self.canvas.hovered is None

    def test_focus_toggling(self):
        assert self.canvas.toggle_focus(self.node(self.main)) is True
        assert self.canvas.focused_functions == {self.main}

        assert self.canvas.toggle_focus(self.node(self.main)) is False
        assert self.canvas.focused_functions == frozenset()

        self.canvas.toggle_focus(self.node(self.load))
        self.canvas.clear_focus()
        assert self.canvas.focused_functions == frozenset()

    def test_set_hovered_reports_changes(self):
        assert self.canvas.set_hovered(self.node(self.main)) is True
        assert self.canvas.set_hovered(self.node(self.main)) is False
        assert self.canvas.set_hovered(None) is True

    def test_edge_classification(self):
        assert self.canvas.classify_edge(self.main_to_load) is EdgeDirection.NONE

        self.canvas.set_hovered(self.node(self.load))

        assert self.canvas.classify_edge(self.main_to_load) is EdgeDirection.UPSTREAM
        assert self.canvas.classify_edge(self.load_to_parse) is EdgeDirection.DOWNSTREAM

    def test_self_loop_is_never_upstream_or_downstream(self):
        self.canvas.toggle_focus(self.node(self.loop))

        assert self.canvas.classify_edge(self.self_loop) is EdgeDirection.SELF_LOOP

    def test_downstream_wins_between_two_highlighted_nodes(self):
        self.canvas.toggle_focus(self.node(self.main))
        self.canvas.set_hovered(self.node(self.load))

        assert self.canvas.classify_edge(self.main_to_load) is EdgeDirection.DOWNSTREAM
