"""
Viewport Load Controller

This module binds series to viewports and owns each viewport's load state:
it builds the image stack, registers per-image metadata, issues the image
fetch, and once the image arrives displays it, wires the render / navigation /
interaction listeners, publishes the viewport state for reconstruction, and
hands over to the arbiter for reference lines and prefetch.

States per viewport: empty -> loading -> displayed, displayed -> loading on a
series swap, and error reachable from loading.

Inputs:
    - bind(viewport_index, LoadRequest) / unbind(viewport_index) calls
    - Fetch completions (concurrent.futures.Future)
    - Render, new-image and interaction notifications from render surfaces

Outputs:
    - Displayed images and per-viewport tool state
    - Published viewport state in the ViewerStateStore
    - series_loaded / load_failed / state_changed signals
    - Error-display hook calls for failed loads

Requirements:
    - PySide6 for signals
    - core.stack_builder, core.metadata_indexer, core.progress_registry,
      core.image_fetch_service, core.viewer_state_store
    - core.activation_coordinator / core.sync_arbiter for cross-viewport rules
"""

import itertools
from concurrent.futures import CancelledError, Future
from typing import Any, Callable, Dict, List, Optional
from PySide6.QtCore import QObject, Signal

from core.activation_coordinator import ActivationCoordinator
from core.metadata_indexer import MetadataIndexer
from core.progress_registry import ProgressRegistry
from core.signal_subscription import Subscription, disconnect_all
from core.stack_builder import ImageStack, InvalidRequestError, build_stack
from core.study_store import StudyStore
from core.sync_arbiter import ReferenceLinePrefetchArbiter
from core.view_settings import ViewSettings
from core.viewer_state_store import ViewerStateStore
from gui.viewport_container import ViewportContainer
from gui.viewport_layout import ViewportLayout
from tools.reference_lines import ImageSynchronizer
from utils.debug_log import debug_log
from utils.dicom_utils import get_orientation_markers


STATE_EMPTY = "empty"
STATE_LOADING = "loading"
STATE_DISPLAYED = "displayed"
STATE_ERROR = "error"


class LoadRequest:
    """
    What to show in a viewport.

    Attributes:
        study_instance_uid / series_instance_uid: Series to bind (None = nothing to show)
        current_image_id_index: Starting stack position
        view_settings: Optional ViewSettings to apply instead of the image defaults
    """

    def __init__(self, study_instance_uid: Optional[str] = None, series_instance_uid: Optional[str] = None,
                 current_image_id_index: int = 0, view_settings: Optional[ViewSettings] = None):
        self.study_instance_uid = study_instance_uid
        self.series_instance_uid = series_instance_uid
        self.current_image_id_index = current_image_id_index
        self.view_settings = view_settings

    def names_series(self) -> bool:
        return bool(self.study_instance_uid) and bool(self.series_instance_uid)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoadRequest":
        """Build a request from a published viewer state entry."""
        return cls(
            study_instance_uid=data.get("study_instance_uid"),
            series_instance_uid=data.get("series_instance_uid"),
            current_image_id_index=data.get("current_image_id_index") or 0,
            view_settings=ViewSettings.from_dict(data.get("viewport")),
        )

    def __repr__(self) -> str:
        return (f"LoadRequest(study={self.study_instance_uid!r}, series={self.series_instance_uid!r}, "
                f"index={self.current_image_id_index})")


class ViewportLoadState:
    """
    Load state of one viewport, owned exclusively by the controller.

    Every bind and unbind stamps a new generation drawn from the
    controller; a fetch completion carrying any other generation is stale
    and is dropped. Generations are never reused, also across teardown.
    """

    def __init__(self, viewport_index: int):
        self.viewport_index = viewport_index
        self.state = STATE_EMPTY
        self.request: Optional[LoadRequest] = None
        self.stack: Optional[ImageStack] = None
        self.loading_image_id: Optional[str] = None
        self.view_settings: Optional[ViewSettings] = None
        self.generation = 0
        self.subscriptions: List[Subscription] = []

    @property
    def is_empty(self) -> bool:
        return self.state == STATE_EMPTY

    def __repr__(self) -> str:
        return f"ViewportLoadState(viewport={self.viewport_index}, state={self.state}, stack={self.stack!r})"


def default_error_display(viewport_index: int, image_id: str, error: BaseException) -> None:
    """Print a load failure (used when no error-display hook is supplied)."""
    print(f"[LOAD ERROR] Viewport {viewport_index} could not load {image_id}: {error}")


class ViewportLoadController(QObject):
    """
    Binds series to viewports and keeps per-viewport load state consistent.

    Responsibilities:
    - Stack building, metadata registration and the single fetch per load
    - Progress registry entries for in-flight fetches
    - Exactly one set of render / navigation / interaction listeners per viewport
    - Publishing viewport state for reconstruction
    - Reference-line and prefetch hand-over after a successful load
    - Teardown of a viewport's listeners, state and render surface
    """

    # Signals
    series_loaded = Signal(int, object)  # viewport index, info dict
    load_failed = Signal(int, str, object)  # viewport index, image_id, error
    state_changed = Signal(int, str)  # viewport index, new state

    def __init__(
        self,
        layout: ViewportLayout,
        study_store: StudyStore,
        metadata_indexer: MetadataIndexer,
        progress_registry: ProgressRegistry,
        fetch_service,
        state_store: ViewerStateStore,
        activation: ActivationCoordinator,
        arbiter: ReferenceLinePrefetchArbiter,
        synchronizer: ImageSynchronizer,
        clip_player=None,
        config=None,
        error_display: Optional[Callable[[int, str, BaseException], None]] = None,
    ):
        """
        Initialize the controller.

        Args:
            layout: Viewport layout (slot index -> container / surface)
            study_store: Read-only study/series lookup
            metadata_indexer: Per-image metadata lookup
            progress_registry: In-flight fetch registry
            fetch_service: Image fetch service returning Futures
            state_store: Viewer state store used for reconstruction
            activation: Activation coordinator (active viewport and activation requests)
            arbiter: Prefetch / reference-line arbiter
            synchronizer: Shared reference-line synchronizer
            clip_player: Optional clip player stopped on teardown
            config: Optional ConfigManager (reference line switch)
            error_display: Optional hook called with (viewport_index, image_id, error)
        """
        super().__init__()
        self.layout = layout
        self.study_store = study_store
        self.metadata_indexer = metadata_indexer
        self.progress_registry = progress_registry
        self.fetch_service = fetch_service
        self.state_store = state_store
        self.activation = activation
        self.arbiter = arbiter
        self.synchronizer = synchronizer
        self.clip_player = clip_player
        self.config = config
        self.error_display = error_display or default_error_display
        self._states: Dict[int, ViewportLoadState] = {}
        self._generations = itertools.count(1)

    # --- queries ---

    def get_load_state(self, viewport_index: int) -> Optional[ViewportLoadState]:
        return self._states.get(viewport_index)

    def get_state(self, viewport_index: int) -> Optional[str]:
        state = self._states.get(viewport_index)
        return state.state if state else None

    def get_stack(self, viewport_index: int) -> Optional[ImageStack]:
        state = self._states.get(viewport_index)
        return state.stack if state else None

    def reference_lines_enabled(self) -> bool:
        if self.config is None:
            return True
        return self.config.get_reference_lines_enabled()

    # --- binding ---

    def bind(self, viewport_index: int, request: Optional[LoadRequest]) -> Optional[Future]:
        """
        Bind a series to a viewport and start fetching its cursor image.

        A request that does not resolve to a study and a non-empty series puts
        the viewport in the empty state; no fetch is issued.

        Args:
            viewport_index: Viewport slot (mounted on demand)
            request: What to show

        Returns:
            The fetch Future, or None when the viewport was left empty
        """
        container = self.layout.mount(viewport_index)
        state = self._states.get(viewport_index)
        if state is None:
            state = ViewportLoadState(viewport_index)
            self._states[viewport_index] = state

        # Invalidate any outstanding fetch of a previous binding
        state.generation = next(self._generations)
        disconnect_all(state.subscriptions)
        state.subscriptions = []

        container.show_loading()
        container.set_active(self.activation.is_active(viewport_index))

        if request is None or not request.names_series():
            self._set_empty(state, container, "request names no study/series")
            return None

        study = self.study_store.find_study(request.study_instance_uid)
        series = self.study_store.find_series(request.study_instance_uid, request.series_instance_uid)
        try:
            stack, metadata = build_stack(study, series, request.current_image_id_index)
        except InvalidRequestError as e:
            self._set_empty(state, container, str(e))
            return None

        self.metadata_indexer.register_all(metadata)
        self.state_store.clear_viewport(viewport_index)

        image_id = stack.current_image_id
        state.request = request
        state.stack = stack
        state.loading_image_id = image_id
        self.progress_registry.set_viewport_loading(viewport_index, image_id)
        self._set_state(state, STATE_LOADING)

        container.surface.enable()
        print(f"[VIEWPORT] Loading {image_id} into viewport {viewport_index}")
        debug_log("viewport_load_controller.bind", "fetch", {
            "viewport": viewport_index, "image_id": image_id, "generation": state.generation})

        generation = state.generation
        future = self.fetch_service.fetch(image_id)
        future.add_done_callback(
            lambda done: self._on_fetch_done(viewport_index, generation, image_id, done))
        return future

    def reload_viewport(self, viewport_index: int) -> Optional[Future]:
        """
        Rebuild a viewport from its published state in the active content id.

        Returns:
            The fetch Future, or None if nothing was published or the viewport stays empty
        """
        data = self.state_store.get_loaded_series_data(viewport_index)
        if not data:
            return None
        return self.bind(viewport_index, LoadRequest.from_dict(data))

    def _set_state(self, state: ViewportLoadState, new_state: str) -> None:
        if state.state != new_state:
            state.state = new_state
            self.state_changed.emit(state.viewport_index, new_state)

    def _set_empty(self, state: ViewportLoadState, container: ViewportContainer, reason: str) -> None:
        """Show the empty state; nothing is fetched."""
        debug_log("viewport_load_controller._set_empty", "empty", {
            "viewport": state.viewport_index, "reason": reason})
        state.request = None
        state.stack = None
        state.view_settings = None
        if state.loading_image_id is not None:
            self.progress_registry.clear_viewport_loading(state.viewport_index)
            state.loading_image_id = None
        if container.surface.is_enabled():
            container.surface.disable()
        container.show_empty()
        self._set_state(state, STATE_EMPTY)

    # --- fetch continuations ---

    def _on_fetch_done(self, viewport_index: int, generation: int, image_id: str, future: Future) -> None:
        """Dispatch a fetch completion, dropping completions of superseded bindings."""
        state = self._states.get(viewport_index)
        container = self.layout.get_container(viewport_index)
        if state is None or container is None or state.generation != generation:
            debug_log("viewport_load_controller._on_fetch_done", "stale completion dropped", {
                "viewport": viewport_index, "image_id": image_id, "generation": generation})
            return

        if future.cancelled():
            self._on_fetch_failed(state, container, image_id, CancelledError())
            return
        error = future.exception()
        if error is not None:
            self._on_fetch_failed(state, container, image_id, error)
            return

        try:
            self._on_fetch_succeeded(state, container, future.result())
        except (RuntimeError, ValueError, LookupError, AttributeError, TypeError) as e:
            self._on_fetch_failed(state, container, image_id, e)

    def _on_fetch_failed(self, state: ViewportLoadState, container: ViewportContainer,
                         image_id: str, error: BaseException) -> None:
        """Move to the error state and report the failure."""
        if state.loading_image_id is not None:
            self.progress_registry.clear_viewport_loading(state.viewport_index)
            state.loading_image_id = None
        container.show_error()
        self._set_state(state, STATE_ERROR)
        debug_log("viewport_load_controller._on_fetch_failed", "load failed", {
            "viewport": state.viewport_index, "image_id": image_id, "error": str(error)})
        self.load_failed.emit(state.viewport_index, image_id, error)
        self.error_display(state.viewport_index, image_id, error)

    def _on_fetch_succeeded(self, state: ViewportLoadState, container: ViewportContainer, image) -> None:
        """Display the loaded image and run the once-per-load side effects."""
        viewport_index = state.viewport_index
        surface = container.surface
        stack = state.stack
        requested_settings = state.request.view_settings if state.request else None

        surface.display_image(image, requested_settings)

        if state.loading_image_id is not None:
            self.progress_registry.clear_viewport_loading(viewport_index)
            state.loading_image_id = None

        # Saved settings already carry their zoom; only fresh loads are fitted
        surface.resize(fit_to_window=requested_settings is None)
        container.show_loaded()

        plane = self.metadata_indexer.get_image_plane(image.image_id)
        if plane is not None:
            surface.orientation_markers = get_orientation_markers(plane["row_cosines"], plane["column_cosines"])
        else:
            surface.orientation_markers = None

        surface.clear_tool_state("stack")
        surface.add_tool_state("stack", stack)

        self._attach_listeners(state, surface)

        state.view_settings = surface.get_viewport()
        self._set_state(state, STATE_DISPLAYED)

        request = state.request
        self.state_store.publish(
            None,
            viewport_index,
            study_instance_uid=request.study_instance_uid,
            series_instance_uid=request.series_instance_uid,
            current_image_id_index=stack.current_image_id_index,
            viewport=state.view_settings.to_dict() if state.view_settings else None,
        )

        if self.reference_lines_enabled() and plane is not None and plane["frame_of_reference_uid"]:
            self.synchronizer.add(surface)
            self.arbiter.show_reference_lines(viewport_index)

        if self.activation.is_active(viewport_index):
            self.arbiter.enable_prefetch(viewport_index)

        print(f"[VIEWPORT] Viewport {viewport_index} displays {image.image_id}")
        self.series_loaded.emit(viewport_index, {
            "viewport_index": viewport_index,
            "study_instance_uid": request.study_instance_uid,
            "series_instance_uid": request.series_instance_uid,
            "stack": stack,
        })

    # --- listeners ---

    def _attach_listeners(self, state: ViewportLoadState, surface) -> None:
        """Replace the viewport's listeners with exactly one render, navigation and interaction listener."""
        disconnect_all(state.subscriptions)
        viewport_index = state.viewport_index
        state.subscriptions = [
            Subscription(surface.image_rendered, lambda i=viewport_index: self._on_image_rendered(i)),
            Subscription(surface.new_image, lambda image_id, i=viewport_index: self._on_new_image(i, image_id)),
            Subscription(surface.interaction, lambda event_type, i=viewport_index: self._on_interaction(i, event_type)),
        ]

    def _on_image_rendered(self, viewport_index: int) -> None:
        """Publish the current view settings (overwrite)."""
        state = self._states.get(viewport_index)
        surface = self.layout.get_surface(viewport_index)
        if state is None or surface is None or state.state != STATE_DISPLAYED:
            return
        settings = surface.get_viewport()
        if settings is None:
            return
        state.view_settings = settings
        self.state_store.publish(None, viewport_index, viewport=settings.to_dict())

    def _on_new_image(self, viewport_index: int, image_id: str) -> None:
        """Move the stack cursor to the new image and publish it."""
        state = self._states.get(viewport_index)
        if state is None or state.stack is None:
            return
        if not state.stack.is_navigable():
            return
        try:
            index = state.stack.index_of(image_id)
        except ValueError:
            print(f"[WARNING] Viewport {viewport_index} shows {image_id}, which is not in its stack")
            return
        state.stack.set_current_index(index)
        self.state_store.publish(None, viewport_index, current_image_id_index=index)

    def _on_interaction(self, viewport_index: int, event_type: str) -> None:
        """Raise an activation request when the interaction happened outside the active viewport."""
        if self.activation.is_active(viewport_index):
            return
        debug_log("viewport_load_controller._on_interaction", "activation request", {
            "viewport": viewport_index, "event": event_type})
        self.activation.request_activation(viewport_index)

    # --- teardown ---

    def unbind(self, viewport_index: int) -> bool:
        """
        Tear down a viewport.

        Stops clip playback (best effort), releases the listeners, the load
        state and the progress registry entry, forgets the activation state
        and disables the render surface, which removes it from the
        synchronizer and the prefetch / reference-line tools.

        Args:
            viewport_index: Viewport slot

        Returns:
            True if the viewport had load state or a mounted surface
        """
        state = self._states.pop(viewport_index, None)
        surface = self.layout.get_surface(viewport_index)

        if surface is not None and self.clip_player is not None:
            try:
                self.clip_player.stop_clip(surface)
            except Exception as e:
                print(f"[WARNING] Could not stop playback on viewport {viewport_index}: {e}")
                debug_log("viewport_load_controller.unbind", "stop clip failed", {
                    "viewport": viewport_index, "error": str(e)})

        if state is not None:
            state.generation = next(self._generations)
            disconnect_all(state.subscriptions)
            state.subscriptions = []

        self.progress_registry.clear_viewport_loading(viewport_index)
        self.activation.forget(viewport_index)

        if surface is not None:
            surface.disable()

        debug_log("viewport_load_controller.unbind", "unbound", {"viewport": viewport_index})
        return state is not None or surface is not None

    def reset(self) -> None:
        """Tear down every viewport with load state."""
        for viewport_index in list(self._states):
            self.unbind(viewport_index)
