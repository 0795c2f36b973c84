"""gistree TUI: a textual Tree driven by GistTreeProvider."""

import logging
from typing import Iterator, Optional

from rich.text import Text
from textual import on, work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, VerticalScroll
from textual.widgets import Footer, Header, Static, Tree
from textual.widgets.tree import TreeNode

from gistree.errors import GistreeError
from gistree.models import AnyNode, Collapsible, NodeKind, node_key
from gistree.session import GistSession
from gistree.storage import SortDirection, SortType
from gistree.tree import TreeChangeEvent

logger = logging.getLogger(__name__)


def node_label(node: AnyNode) -> Text:
    """Tree row text: label, then the description dimmed."""
    display = node.get_display()
    label = Text(display.label)
    if display.description:
        label.append(f"  {display.description}", style="dim")
    return label


class GistreeApp(App):
    """Browse gists, starred gists, followed users and opened gists."""

    TITLE = "gistree"
    SUB_TITLE = "GitHub gists as a tree"

    CSS = """
    #main-layout {
        height: 1fr;
    }

    #gist-tree {
        width: 2fr;
        height: 100%;
        border-right: solid $primary;
        scrollbar-gutter: stable;
    }

    #preview-scroll {
        width: 3fr;
        height: 100%;
        padding: 0 1;
    }

    #status {
        dock: bottom;
        height: 1;
        background: $surface;
        color: $text-muted;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True),
        Binding("r", "refresh", "Refresh", show=True),
        Binding("n", "sort('name')", "Sort: name", show=True),
        Binding("c", "sort('creationTime')", "Sort: created", show=True),
        Binding("u", "sort('updateTime')", "Sort: updated", show=True),
        Binding("d", "toggle_direction", "Direction", show=True),
    ]

    def __init__(self, session: GistSession):
        super().__init__()
        self.session = session
        self.theme = session.config.theme
        self._loaded: set[int] = set()
        self._unsubscribe = session.provider.on_did_change(self.on_tree_change)

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="main-layout"):
            yield Tree("Gists", id="gist-tree")
            with VerticalScroll(id="preview-scroll"):
                yield Static("Select a file to preview it.", id="preview")
        yield Static("", id="status")
        yield Footer()

    def on_mount(self) -> None:
        tree = self.query_one("#gist-tree", Tree)
        tree.show_root = False
        tree.root.expand()
        self.load_children(tree.root)
        self.update_status()

    async def on_unmount(self) -> None:
        self._unsubscribe()
        await self.session.close()

    # --- loading --------------------------------------------------------

    @work(group="tree-loads")
    async def load_children(self, tree_node: TreeNode) -> None:
        """Fetch and attach the children of ``tree_node``."""
        self.update_status("Loading...")
        try:
            children = await self.session.provider.get_children(tree_node.data)
        except GistreeError as e:
            self.notify(str(e), severity="error")
            return
        finally:
            self.update_status()

        tree_node.remove_children()
        for child in children:
            if child.get_display().collapsible is Collapsible.NONE:
                tree_node.add_leaf(node_label(child), data=child)
            else:
                tree_node.add(node_label(child), data=child)
        self._loaded.add(tree_node.id)
        if not children:
            tree_node.add_leaf(Text("(empty)", style="dim italic"))

    @on(Tree.NodeExpanded, "#gist-tree")
    def on_gist_tree_expanded(self, event: Tree.NodeExpanded) -> None:
        if event.node.id not in self._loaded and event.node.data is not None:
            self.load_children(event.node)

    @on(Tree.NodeSelected, "#gist-tree")
    def on_gist_tree_selected(self, event: Tree.NodeSelected) -> None:
        node = event.node.data
        if node is not None and node.kind is NodeKind.CONTENT:
            self.show_preview(node.uri)

    @work(exclusive=True, group="preview")
    async def show_preview(self, uri: str) -> None:
        preview = self.query_one("#preview", Static)
        try:
            content = await self.session.filesystem.read_file(uri)
        except (GistreeError, FileNotFoundError) as e:
            preview.update(Text(f"Could not read {uri}: {e}", style="red"))
            return
        preview.update(Text(content.decode("utf-8", errors="replace")))

    # --- invalidation ---------------------------------------------------

    def _walk(self, tree_node: TreeNode) -> Iterator[TreeNode]:
        for child in tree_node.children:
            yield child
            yield from self._walk(child)

    def on_tree_change(self, event: TreeChangeEvent) -> None:
        """Drop the invalidated subtree and reload it if it is visible."""
        tree = self.query_one("#gist-tree", Tree)
        key = node_key(event.node)
        if event.node is None:
            targets = [tree.root]
        else:
            targets = [n for n in self._walk(tree.root) if n.data is not None and node_key(n.data) == key]

        for tree_node in targets:
            self._loaded.discard(tree_node.id)
            if tree_node.is_expanded:
                self.load_children(tree_node)
            else:
                tree_node.remove_children()

    # --- actions --------------------------------------------------------

    def action_refresh(self) -> None:
        tree = self.query_one("#gist-tree", Tree)
        selected: Optional[TreeNode] = tree.cursor_node
        if selected is not None and selected.data is not None and selected.allow_expand:
            self.session.provider.refresh(selected.data)
        else:
            self.session.provider.refresh()
        self.notify("Refreshed")

    def action_sort(self, sort_type: str) -> None:
        self.session.commands.sort_by(SortType(sort_type))
        self.update_status()

    def action_toggle_direction(self) -> None:
        current = self.session.store.sort_direction
        direction = (
            SortDirection.DESCENDING if current is SortDirection.ASCENDING else SortDirection.ASCENDING
        )
        self.session.commands.sort_direction(direction)
        self.update_status()

    def update_status(self, message: Optional[str] = None) -> None:
        store = self.session.store
        text = f"Sort: {store.sort_type.value} {store.sort_direction.value}"
        if message:
            text = f"{text} | {message}"
        self.query_one("#status", Static).update(text)
