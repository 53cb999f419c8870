import pytest

from engine.in_memory import EngineRejectedError, InMemoryMapEngine
from engine.types import Image
from geo.spherical import GeoPoint
from overlays.descriptors import Circle, CoordinatesOrder, Marker, Polygon, Polyline
from overlays.errors import (
    BindingContextError,
    ConcurrentReconcileError,
    ConstructionError,
    DuplicateKeyError,
    MutationError,
    ReconcileError,
)
from reconcile.reconciler import Reconciler, assign_identities

PIN = Image("pin.png")


def marker(lat: float, lon: float, **kw) -> Marker:
    return Marker(coordinate=GeoPoint(lat, lon), pin_image=PIN, **kw)


def circle(radius_m: float = 100.0, **kw) -> Circle:
    return Circle(coordinate=GeoPoint(50.0, 14.0), radius_m=radius_m, **kw)


def ops(engine: InMemoryMapEngine) -> list[str]:
    return [c.op for c in engine.mutation_calls()]


def test_initial_pass_inserts_every_descriptor():
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)
    result = rec.reconcile([marker(0, 0), circle(), None, [marker(1, 1)]])

    assert result.inserts == 3
    assert ops(engine) == ["add", "add", "add"]
    assert [n.kind for n in rec.registry] == ["marker", "circle", "marker"]
    assert len(engine.live()) == 3


def test_reconciling_an_equal_tree_issues_no_engine_calls():
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)

    def build():
        return [
            marker(0, 0, tag="a"),
            circle(key="c"),
            Polyline(coordinates=[GeoPoint(0, 0), GeoPoint(1, 1)]),
        ]

    rec.reconcile(build())
    engine.reset_calls()

    result = rec.reconcile(build())
    assert result.is_noop
    assert engine.mutation_calls() == []


def test_appending_creates_only_the_new_overlay():
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)
    rec.reconcile([marker(0, 0), marker(1, 1)])
    engine.reset_calls()

    result = rec.reconcile([marker(0, 0), marker(1, 1), marker(2, 2)])
    assert result.inserts == 1
    assert result.updates == 0
    assert ops(engine) == ["add"]


def test_changed_attribute_is_a_single_engine_call():
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)
    rec.reconcile([circle(100.0)])
    live = engine.live("circle")[0]
    engine.reset_calls()

    result = rec.reconcile([circle(250.0)])
    calls = engine.mutation_calls()
    assert [(c.op, c.object_id, c.attribute, c.value) for c in calls] == [
        ("set", live.id, "radius_m", 250.0)
    ]
    assert result.updates == 1
    assert result.operations[0].detail == ("radius_m",)
    assert live.radius_m == 250.0


def test_removing_a_keyed_overlay_removes_only_it():
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)
    rec.reconcile([marker(0, 0, key="a"), marker(1, 1, key="b"), marker(2, 2, key="c")])
    b_id = rec.registry.get(("key", "b")).engine_id
    engine.reset_calls()

    result = rec.reconcile([marker(0, 0, key="a"), marker(2, 2, key="c")])
    assert result.removes == 1
    assert [(c.op, c.object_id) for c in engine.mutation_calls()] == [("remove", b_id)]
    assert len(rec.registry) == 2


def test_keyed_reorder_moves_nodes_without_recreating():
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)
    rec.reconcile([marker(0, 0, key="a"), marker(1, 1, key="b"), marker(2, 2, key="c")])
    ids = {k: rec.registry.get(("key", k)).engine_id for k in "abc"}
    engine.reset_calls()

    result = rec.reconcile([marker(2, 2, key="c"), marker(0, 0, key="a"), marker(1, 1, key="b")])
    assert engine.mutation_calls() == []
    assert result.moves >= 1
    assert result.inserts == result.removes == result.updates == 0
    assert [n.engine_id for n in rec.registry] == [ids["c"], ids["a"], ids["b"]]


def test_keyed_insert_does_not_shift_unkeyed_identities():
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)
    rec.reconcile([marker(0, 0), marker(1, 1)])
    engine.reset_calls()

    result = rec.reconcile([circle(key="new"), marker(0, 0), marker(1, 1)])
    assert ops(engine) == ["add"]
    assert result.inserts == 1
    assert result.moves == 0
    assert [n.identity for n in rec.registry] == [("key", "new"), ("pos", 0), ("pos", 1)]


def test_kind_change_at_same_position_replaces_node():
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)
    rec.reconcile([marker(0, 0)])
    engine.reset_calls()

    result = rec.reconcile([circle()])
    assert [(c.op, c.kind) for c in engine.mutation_calls()] == [
        ("remove", "marker"),
        ("add", "circle"),
    ]
    assert result.removes == 1
    assert result.inserts == 1


def test_callback_only_change_touches_no_engine_object():
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)
    rec.reconcile([marker(0, 0, on_click=lambda m: None)])
    engine.reset_calls()

    def new_cb(m):
        return None

    result = rec.reconcile([marker(0, 0, on_click=new_cb)])
    assert engine.mutation_calls() == []
    assert result.updates == 1
    assert rec.registry[0].descriptor.on_click is new_cb


def test_construction_error_does_not_stop_siblings():
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)

    with pytest.raises(ReconcileError) as exc:
        rec.reconcile([marker(0, 0), circle(0.0, key="bad"), marker(1, 1)])

    err = exc.value
    assert len(err.errors) == 1
    assert isinstance(err.errors[0], ConstructionError)
    assert err.errors[0].identity == ("key", "bad")
    assert isinstance(err.errors[0].cause, EngineRejectedError)
    assert err.result.inserts == 2
    assert len(engine.live("marker")) == 2
    assert len(rec.registry) == 2

    # The next pass retries the failed overlay.
    result = rec.reconcile([marker(0, 0), circle(10.0, key="bad"), marker(1, 1)])
    assert result.inserts == 1
    assert [n.kind for n in rec.registry] == ["marker", "circle", "marker"]


def test_rejected_update_is_retried_on_next_pass():
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)
    square = [GeoPoint(0, 0), GeoPoint(0, 1), GeoPoint(1, 1), GeoPoint(1, 0)]
    bowtie = [GeoPoint(0, 0), GeoPoint(1, 1), GeoPoint(0, 1), GeoPoint(1, 0)]
    rec.reconcile([Polygon(coordinates=square)])
    engine.reset_calls()

    with pytest.raises(ReconcileError) as exc:
        rec.reconcile([Polygon(coordinates=bowtie)])
    assert isinstance(exc.value.errors[0], MutationError)
    assert exc.value.errors[0].mutation.attribute == "perimeter"
    assert engine.mutation_calls() == []

    # Same tree again: still different from what was applied, so retried.
    with pytest.raises(ReconcileError):
        rec.reconcile([Polygon(coordinates=bowtie)])

    # Convex hull ordering repairs the perimeter.
    result = rec.reconcile(
        [Polygon(coordinates=bowtie, coordinates_order=CoordinatesOrder.CONVEX_HULL)]
    )
    assert result.updates == 1
    assert [c.attribute for c in engine.mutation_calls()] == ["coordinates"]


def test_convex_hull_polygon_ignores_interior_point_changes():
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)
    corners = [GeoPoint(50.0, 14.0), GeoPoint(50.0, 15.0), GeoPoint(51.0, 15.0), GeoPoint(51.0, 14.0)]

    def polygon(extra):
        return Polygon(coordinates=[*corners, extra], coordinates_order=CoordinatesOrder.CONVEX_HULL)

    rec.reconcile([polygon(GeoPoint(50.5, 14.5))])
    live = engine.live("polygon")[0]
    assert len(live.coordinates) == 4
    engine.reset_calls()

    rec.reconcile([polygon(GeoPoint(50.4, 14.6))])
    assert engine.mutation_calls() == []


def test_partial_hull_update_keeps_the_declared_coordinates(monkeypatch):
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)
    square = [GeoPoint(0, 0), GeoPoint(0, 1), GeoPoint(1, 1), GeoPoint(1, 0)]
    corners = [GeoPoint(50.0, 14.0), GeoPoint(50.0, 15.0), GeoPoint(51.0, 15.0), GeoPoint(51.0, 14.0)]
    hulled = Polygon(
        coordinates=[*corners, GeoPoint(50.5, 14.5)],
        coordinates_order=CoordinatesOrder.CONVEX_HULL,
        fill_color="red",
    )
    rec.reconcile([Polygon(coordinates=square)])

    set_attribute = engine._set_attribute

    def reject_fill(obj, name, value):
        if name == "fill_color":
            raise EngineRejectedError("fill rejected")
        set_attribute(obj, name, value)

    monkeypatch.setattr(engine, "_set_attribute", reject_fill)
    with pytest.raises(ReconcileError) as exc:
        rec.reconcile([hulled])
    assert exc.value.errors[0].mutation.attribute == "fill_color"

    node = rec.registry[0]
    assert len(engine.live("polygon")[0].coordinates) == 4
    assert node.descriptor.coordinates == tuple(square)
    assert node.descriptor.coordinates_order is CoordinatesOrder.AS_GIVEN

    monkeypatch.undo()
    result = rec.reconcile([hulled])
    assert result.updates == 1
    assert engine.live("polygon")[0].fill_color == "red"
    assert node.descriptor == hulled


def test_duplicate_keys_are_rejected_before_touching_the_engine():
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)
    with pytest.raises(DuplicateKeyError):
        rec.reconcile([marker(0, 0, key="x"), circle(key="x")])
    assert engine.calls == []


def test_assign_identities_counts_unkeyed_positions_only():
    a, b, c = marker(0, 0), circle(key="k"), marker(1, 1)
    assert assign_identities([a, b, c]) == [(("pos", 0), a), (("key", "k"), b), (("pos", 1), c)]


def test_overlays_require_a_bound_engine():
    rec = Reconciler(None)
    with pytest.raises(BindingContextError):
        rec.reconcile([marker(0, 0)])


def test_reentrant_reconcile_is_rejected():
    class ReentrantEngine(InMemoryMapEngine):
        reconciler: Reconciler

        def add_marker(self, options):
            with pytest.raises(ConcurrentReconcileError):
                self.reconciler.reconcile([])
            return super().add_marker(options)

    engine = ReentrantEngine()
    rec = Reconciler(engine)
    engine.reconciler = rec
    result = rec.reconcile([marker(0, 0)])
    assert result.inserts == 1


def test_clear_tears_down_everything_and_is_safe_when_empty():
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)
    rec.clear()
    assert ops(engine) == ["clear"]

    rec.reconcile([marker(0, 0), circle()])
    engine.reset_calls()
    rec.clear()
    assert ops(engine) == ["clear"]
    assert len(rec.registry) == 0
    assert engine.live() == []
    assert rec.current_tree is None


def test_current_tree_is_the_last_reconciled_tree():
    rec = Reconciler(InMemoryMapEngine())
    tree = [marker(0, 0)]
    rec.reconcile(tree)
    assert rec.current_tree is tree


def test_appending_a_circle_leaves_the_marker_untouched():
    engine = InMemoryMapEngine()
    rec = Reconciler(engine)
    rec.reconcile([marker(0, 0)])
    engine.reset_calls()

    result = rec.reconcile([marker(0, 0), circle()])
    assert [(o.op, o.kind) for o in result.operations] == [("insert", "circle")]
    assert [(c.op, c.kind) for c in engine.mutation_calls()] == [("add", "circle")]
