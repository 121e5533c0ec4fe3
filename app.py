# app.py
"""
Shape Overlay — draw, name and persist points, lines and polygons on a map.

- Polygons never overlap: a new polygon cuts whatever lies under it.
- The server always stores the original, uncut geometry.
- Borders are drawn from a dissolved overlay so cut seams stay hidden.
"""

import asyncio
import json
import logging

import folium
import streamlit as st
from folium.plugins import Draw
from streamlit_folium import st_folium

from shape_overlay import config
from shape_overlay.codec import list_lat_lon
from shape_overlay.errors import DuplicateName, MalformedGeometry, NotFound, PersistenceFailure, UnsupportedGeometryKind
from shape_overlay.overlay import OverlayMaintainer
from shape_overlay.render import dissolved_to_geojson, shapes_to_geojson
from shape_overlay.shapes import ShapeKind
from shape_overlay.store import default_store

# --------------------------
# Config
# --------------------------
st.set_page_config(page_title="Shape Overlay", layout="wide")
logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("shape_overlay.app")

DEFAULT_CENTER = [39.0, 35.0]
DEFAULT_ZOOM = 6

st.title("Shape Overlay — named shapes on a map")
st.markdown(
    """
Draw a **point**, **line** or **polygon**, give it a name and save it.
Polygons are kept non-overlapping: the newest polygon sits on top and cuts the ones beneath it.
"""
)


# =========================
# Session helpers
# =========================
def run(coro):
    return asyncio.run(coro)


def get_maintainer() -> OverlayMaintainer:
    if "maintainer" not in st.session_state:
        m = OverlayMaintainer(default_store())
        try:
            run(m.load())
        except PersistenceFailure as e:
            st.error(f"Could not load shapes: {e.describe()}")
        st.session_state["maintainer"] = m
    return st.session_state["maintainer"]


def current_snap_tolerance() -> float:
    return config.snap_tolerance_for_zoom(st.session_state.get("zoom", DEFAULT_ZOOM))


def report_failure(action: str, e: Exception):
    if isinstance(e, DuplicateName):
        st.error(f"{action} failed: {e.message}")
    elif isinstance(e, NotFound):
        st.error(f"{action} failed: record not found.")
    elif isinstance(e, PersistenceFailure):
        st.error(f"{action} failed: {e.describe()}")
    else:
        st.error(f"{action} failed: {e}")


# =========================
# Map helpers
# =========================
def build_map(maintainer: OverlayMaintainer, center_latlon, zoom) -> folium.Map:
    m = folium.Map(location=center_latlon, zoom_start=zoom, control_scale=True)
    frame = maintainer.frame()
    codec = maintainer.codec
    st.session_state["notices"] = st.session_state.get("notices", []) + frame.notices

    # pieces: fill only, borders come from the dissolved layer
    if ShapeKind.POLYGON in maintainer.visible_kinds:
        folium.GeoJson(
            json.loads(shapes_to_geojson(frame.pieces, codec, ShapeKind.POLYGON)),
            name="Polygons",
            style_function=lambda feat: {"color": "#2563eb", "weight": 0, "fillOpacity": 0.25},
            tooltip=folium.GeoJsonTooltip(fields=["name", "id"]),
        ).add_to(m)
        folium.GeoJson(
            json.loads(dissolved_to_geojson(frame, codec)),
            name="Polygon borders",
            style_function=lambda feat: {"color": "#1e3a8a", "weight": 2, "fillOpacity": 0.0},
            interactive=False,
        ).add_to(m)

    if ShapeKind.LINE in maintainer.visible_kinds:
        folium.GeoJson(
            json.loads(shapes_to_geojson(frame.pieces, codec, ShapeKind.LINE)),
            name="Lines",
            style_function=lambda feat: {"color": "#16a34a", "weight": 3},
            tooltip=folium.GeoJsonTooltip(fields=["name", "id"]),
        ).add_to(m)

    if ShapeKind.POINT in maintainer.visible_kinds:
        folium.GeoJson(
            json.loads(shapes_to_geojson(frame.pieces, codec, ShapeKind.POINT)),
            name="Points",
            marker=folium.CircleMarker(radius=6, color="#dc2626", fill=True, fill_opacity=0.8),
            tooltip=folium.GeoJsonTooltip(fields=["name", "id"]),
        ).add_to(m)

    Draw(
        export=False,
        draw_options={
            "polyline": True,
            "polygon": {"allowIntersection": False},
            "marker": True,
            "rectangle": False,
            "circle": False,
            "circlemarker": False,
        },
        edit_options={"edit": False, "remove": False},
    ).add_to(m)

    folium.LayerControl().add_to(m)
    return m


maintainer = get_maintainer()

# =========================
# UI
# =========================
col1, col2 = st.columns([2, 1])

with col2:
    st.header("Visible types")
    visible = []
    for kind, label in [(ShapeKind.POINT, "Points"), (ShapeKind.LINE, "Lines"), (ShapeKind.POLYGON, "Polygons")]:
        if st.checkbox(label, value=kind in maintainer.visible_kinds, key=f"vis_{kind.value}"):
            visible.append(kind)
    if set(visible) != maintainer.visible_kinds:
        maintainer.set_visible_kinds(visible, current_snap_tolerance())

    st.markdown("---")
    st.header("Shapes")
    type_filter = st.selectbox("Type", options=list(config.TYPE_FILTERS), index=0)
    sort = st.selectbox("Sort", options=list(config.VALID_SORTS), index=config.VALID_SORTS.index(config.DEFAULT_SORT))
    page_no = st.number_input("Page", min_value=1, value=1, step=1)
    try:
        page = run(maintainer.store.list_paged(int(page_no), config.DEFAULT_PAGE_SIZE, type_filter, sort))
    except PersistenceFailure as e:
        st.error(f"Could not list shapes: {e.describe()}")
        page = None

    selected_id = None
    if page is not None:
        st.caption(f"Page {page.page} of {max(page.total_pages, 1)} • {page.total_items} record(s)")
        options = {f"#{it['id']} {it.get('name', '')} ({it.get('type', '')})": it["id"] for it in page.items}
        if options:
            label = st.radio("Select", options=list(options.keys()), index=0)
            selected_id = options[label]
        else:
            st.info("No records found.")

    if selected_id is not None:
        owner = maintainer.registry.owner_for(selected_id)
        record = maintainer.registry.records.get(owner) if owner else None
        if record is not None:
            st.subheader(record.name or "(no name)")
            pieces = maintainer.registry.pieces_of(owner)
            if record.kind is ShapeKind.POLYGON and not pieces:
                st.caption("Fully covered by other polygons; nothing is drawn for it.")
            with st.expander("Coordinates (lat, lon)", expanded=False):
                st.code("\n".join(list_lat_lon(record.canonical)))
            if record.kind is ShapeKind.POLYGON:
                inside = maintainer.points_inside(owner)
                if inside:
                    st.markdown("**Points inside:** " + ", ".join(name for _, name in inside))

            new_name = st.text_input("Name", value=record.name, key=f"name_{selected_id}")
            edited = st.text_area("Geometry (GeoJSON, lon/lat)", value=json.dumps(record.canonical),
                                  key=f"geom_{selected_id}", height=120)
            c_apply, c_delete = st.columns(2)
            if c_apply.button("Apply", key=f"apply_{selected_id}"):
                try:
                    geometry = json.loads(edited)
                    run(maintainer.update_shape(selected_id, new_name.strip(), geometry, current_snap_tolerance()))
                    st.success("Record updated successfully")
                    st.rerun()
                except (ValueError, UnsupportedGeometryKind, MalformedGeometry) as e:
                    st.error(f"Invalid geometry: {e}")
                except PersistenceFailure as e:
                    report_failure("Update", e)
            if c_delete.button("Delete", key=f"delete_{selected_id}"):
                try:
                    run(maintainer.delete_shape(selected_id, current_snap_tolerance()))
                    st.success("Record deleted successfully")
                    st.rerun()
                except PersistenceFailure as e:
                    report_failure("Delete", e)

with col1:
    st.header("Map")
    m = build_map(maintainer, st.session_state.get("center", DEFAULT_CENTER),
                  st.session_state.get("zoom", DEFAULT_ZOOM))
    out = st_folium(m, width=900, height=600, key="shape_map",
                    returned_objects=["last_active_drawing", "zoom", "center"])

    if out:
        if out.get("zoom") is not None:
            st.session_state["zoom"] = out["zoom"]
        if out.get("center"):
            st.session_state["center"] = [out["center"]["lat"], out["center"]["lng"]]

    for notice in st.session_state.pop("notices", []):
        st.info(notice)

    drawing = (out or {}).get("last_active_drawing")
    drawing_key = json.dumps(drawing, sort_keys=True) if drawing else None
    if drawing and drawing.get("geometry") and drawing_key != st.session_state.get("saved_drawing"):
        geometry = drawing["geometry"]
        st.markdown(f"**New {geometry.get('type', 'shape')}**")
        with st.form("save_shape", clear_on_submit=True):
            name = st.text_input("Name", value="")
            save = st.form_submit_button("Save", type="primary")
        if save:
            if not name.strip():
                st.error("Name is required.")
            else:
                try:
                    sub = run(maintainer.add_shape(name.strip(), geometry, current_snap_tolerance()))
                    st.session_state["saved_drawing"] = drawing_key
                    st.success("Record created successfully")
                    if not sub.visible:
                        st.info("No visible area added: the polygon lies inside existing polygons.")
                    st.rerun()
                except (UnsupportedGeometryKind, MalformedGeometry) as e:
                    st.error(str(e))
                except PersistenceFailure as e:
                    report_failure("Create", e)

# =========================
# Outputs
# =========================
st.markdown("### Download")
st.download_button(
    "Download dissolved polygon borders (GeoJSON)",
    data=dissolved_to_geojson(maintainer.frame(), maintainer.codec).encode("utf-8"),
    file_name="dissolved_borders.geojson",
    mime="application/geo+json",
)
