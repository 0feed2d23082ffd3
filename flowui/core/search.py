"""
Search / match index over the scene hierarchy.

A query is matched against node names (case-insensitive substring). Results
are computed from a snapshot in two passes: direct matches, then a deepest-
first propagation so every node knows whether anything below it matches.
Ancestors of direct matches are marked for auto-expansion.
"""

import asyncio
from typing import Callable, Dict, List, Optional, Set

from flowui.core.scene import PathCache, Scene, SceneNode


class SearchIndex:
    def __init__(self, scene: Scene, path_cache: Optional[PathCache] = None):
        self.scene = scene
        self.query = ""
        self.path_cache = path_cache if path_cache is not None else PathCache()
        self.path_cache.attach(scene)
        self._direct: Dict[int, bool] = {}
        self._subtree: Dict[int, bool] = {}
        self._expand: Set[int] = set()
        self._computed = False
        scene.subscribe(self._on_structure_changed)

    def set_query(self, query: Optional[str]):
        """Change the query. Match caches are dropped, the path cache is kept."""
        query = (query or "").strip()
        if query == self.query:
            return
        self.query = query
        self._invalidate_matches()

    def refresh(self, snapshot: Optional[List[SceneNode]] = None):
        """Recompute every cache for the current query from one snapshot of the scene."""
        self._invalidate_matches()
        self._computed = True
        if not self.query:
            return
        nodes = snapshot if snapshot is not None else self.scene.snapshot()
        needle = self.query.lower()

        for node in nodes:
            self._direct[node.instance_key] = needle in node.name.lower()

        # Bucket by tree depth so children are resolved before their parents
        buckets: List[List[SceneNode]] = []
        for node in nodes:
            level = node.depth
            while len(buckets) <= level:
                buckets.append([])
            buckets[level].append(node)
        for bucket in reversed(buckets):
            for node in bucket:
                self._subtree[node.instance_key] = self._direct[node.instance_key] or any(
                    self._subtree.get(child.instance_key, False) for child in node.children
                )

        for node in nodes:
            if not self._direct[node.instance_key]:
                continue
            parent = node.parent
            while parent is not None and parent.instance_key not in self._expand:
                self._expand.add(parent.instance_key)
                parent = parent.parent

    def is_match(self, node: SceneNode) -> bool:
        if not self.query:
            return True
        self._ensure_computed()
        if node.instance_key not in self._direct:
            self._direct[node.instance_key] = self.query.lower() in node.name.lower()
        return self._direct[node.instance_key]

    def subtree_matches(self, node: SceneNode) -> bool:
        if not self.query:
            return True
        self._ensure_computed()
        cached = self._subtree.get(node.instance_key)
        if cached is None:
            cached = self.is_match(node) or any(self.subtree_matches(child) for child in node.children)
            self._subtree[node.instance_key] = cached
        return cached

    def should_auto_expand(self, node: SceneNode) -> bool:
        if not self.query:
            return False
        self._ensure_computed()
        return node.instance_key in self._expand

    def path(self, node: SceneNode) -> str:
        return self.path_cache.get(node)

    def visible_nodes(self) -> List[SceneNode]:
        """Nodes to show for the current query, in hierarchy order."""
        return [node for node in self.scene.walk() if self.subtree_matches(node)]

    def dispose(self):
        self.scene.unsubscribe(self._on_structure_changed)
        self.path_cache.detach(self.scene)
        self.path_cache.clear()
        self._invalidate_matches()

    def _ensure_computed(self):
        if not self._computed:
            self.refresh()

    def _invalidate_matches(self):
        self._direct.clear()
        self._subtree.clear()
        self._expand.clear()
        self._computed = False

    def _on_structure_changed(self, node: SceneNode):
        self._invalidate_matches()


class DebouncedSearch:
    """Applies queries to a SearchIndex after a quiet period; the newest query wins.

    Must run on the event loop that owns the scene, the snapshot is taken
    inside the recomputation.
    """

    def __init__(
        self,
        index: SearchIndex,
        delay: float = 0.2,
        on_results: Optional[Callable[[SearchIndex], None]] = None,
    ):
        self.index = index
        self.delay = delay
        self.on_results = on_results
        self.runs = 0
        self._pending: Optional[asyncio.Task] = None

    def submit(self, query: str) -> asyncio.Task:
        """Schedule a recomputation, cancelling one that has not finished yet."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._run(query))
        return self._pending

    async def wait(self):
        """Wait until the most recently submitted query has been applied."""
        while self._pending is not None:
            task = self._pending
            try:
                await task
            except asyncio.CancelledError:
                if task is self._pending:
                    return
                continue
            if task is self._pending:
                return

    def cancel(self):
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()

    @property
    def is_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def _run(self, query: str):
        await asyncio.sleep(self.delay)
        self.index.set_query(query)
        self.index.refresh()
        self.runs += 1
        if self.on_results is not None:
            self.on_results(self.index)
