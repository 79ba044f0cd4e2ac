"""
Navigation Architecture Extractor

Summarizes how a site is navigated from one session's clicks: the
category hierarchy, primary/secondary/footer navigation inventories,
page-to-page transitions and URL routing patterns.
"""

import logging
from collections import Counter, OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import networkx as nx

from pipeline.heuristics import HeuristicsConfig, find_phrase, get_heuristics
from pipeline import url_patterns
from world_model.models import ParsedInteraction

logger = logging.getLogger(__name__)


NAV_TAGS = {"a", "button"}
NAV_CLASS_HINTS = ("nav", "menu", "dropdown")


def engagement_level(count: int) -> str:
    if count > 3:
        return "high"
    if count > 1:
        return "medium"
    return "low"


@dataclass
class CategoryNode:
    """One category in the hierarchy."""
    path: str
    name: str
    level: int
    parent_path: Optional[str] = None
    urls: List[str] = field(default_factory=list)
    interaction_count: int = 0
    implicit: bool = False  # inferred parent that was never clicked

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "name": self.name,
            "level": self.level,
            "parentPath": self.parent_path,
            "urls": list(self.urls),
            "interactionCount": self.interaction_count,
            "implicit": self.implicit,
        }


@dataclass
class NavigationItem:
    text: str
    url: str
    section: str  # primary | secondary | footer
    element_type: str  # link | button | dropdown | menu
    click_count: int = 0

    @property
    def engagement(self) -> str:
        return engagement_level(self.click_count)

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "url": self.url,
            "section": self.section,
            "elementType": self.element_type,
            "clickCount": self.click_count,
            "engagement": self.engagement,
        }


@dataclass
class PageTransition:
    from_url: str
    to_url: str
    from_page_type: str
    to_page_type: str
    trigger_text: str = ""
    count: int = 0

    def to_dict(self) -> dict:
        return {
            "fromUrl": self.from_url,
            "toUrl": self.to_url,
            "fromPageType": self.from_page_type,
            "toPageType": self.to_page_type,
            "triggerText": self.trigger_text,
            "count": self.count,
        }


@dataclass
class NavigationArchitecture:
    """Navigation summary of one session. Recomputed per session."""
    domain: str
    category_hierarchy: List[CategoryNode] = field(default_factory=list)
    primary_navigation: List[NavigationItem] = field(default_factory=list)
    secondary_navigation: List[NavigationItem] = field(default_factory=list)
    footer_navigation: List[NavigationItem] = field(default_factory=list)
    hierarchy_depth: int = 0
    cross_page_relationships: List[PageTransition] = field(default_factory=list)
    url_patterns: Dict[str, Dict[str, int]] = field(default_factory=dict)
    discovery_metadata: Dict[str, int] = field(default_factory=dict)
    graph: nx.DiGraph = field(default_factory=nx.DiGraph, repr=False)

    def children_of(self, path: str) -> List[str]:
        if path not in self.graph:
            return []
        return sorted(self.graph.successors(path))

    def to_dict(self) -> dict:
        return {
            "domain": self.domain,
            "categoryHierarchy": [n.to_dict() for n in self.category_hierarchy],
            "navigationStructure": {
                "primary": [i.to_dict() for i in self.primary_navigation],
                "secondary": [i.to_dict() for i in self.secondary_navigation],
                "footer": [i.to_dict() for i in self.footer_navigation],
            },
            "hierarchyDepth": self.hierarchy_depth,
            "crossPageRelationships": [t.to_dict() for t in self.cross_page_relationships],
            "urlPatterns": self.url_patterns,
            "discoveryMetadata": self.discovery_metadata,
        }


class NavigationExtractor:
    """
    Extract navigation architecture from a session's interactions.
    """

    def __init__(self, heuristics: Optional[HeuristicsConfig] = None):
        self.heuristics = heuristics or get_heuristics()

    def extract(self, interactions: Sequence[ParsedInteraction], domain: str = "") -> NavigationArchitecture:
        """
        Build the navigation summary.

        Args:
            interactions: Parsed interactions in session order
            domain: Hostname to restrict to (empty for all)

        Returns:
            NavigationArchitecture
        """
        if domain:
            interactions = [i for i in interactions if url_patterns.hostname(i.url) == domain]

        graph = self.build_category_graph(interactions)
        hierarchy = [self._node_from_graph(graph, path) for path in nx.topological_sort(graph)]
        depth = max((n.level for n in hierarchy), default=-1) + 1

        sections = self.navigation_inventory(interactions)
        transitions = self.cross_page_relationships(interactions)
        routing = self.analyze_url_patterns(interactions, transitions)
        nav_points = sum(len(items) for items in sections.values())

        architecture = NavigationArchitecture(
            domain=domain,
            category_hierarchy=hierarchy,
            primary_navigation=sections["primary"],
            secondary_navigation=sections["secondary"],
            footer_navigation=sections["footer"],
            hierarchy_depth=depth,
            cross_page_relationships=transitions,
            url_patterns=routing,
            discovery_metadata={
                "totalNavigationPoints": nav_points,
                "hierarchyDepth": depth,
                "categoryCount": sum(1 for n in hierarchy if not n.implicit),
                "uniquePages": len({url_patterns.page_url(i.url) for i in interactions if i.url}),
                "transitionCount": sum(t.count for t in transitions),
            },
            graph=graph,
        )
        logger.debug(
            f"Navigation for {domain or 'all domains'}: {len(hierarchy)} categories, "
            f"depth {depth}, {nav_points} navigation points"
        )
        return architecture

    # Category hierarchy

    def build_category_graph(self, interactions: Sequence[ParsedInteraction]) -> nx.DiGraph:
        """
        Category hierarchy as a parent -> child DiGraph.

        Only link clicks on category-shaped URLs contribute. Parents that were
        never clicked are added as implicit nodes.
        """
        graph = nx.DiGraph()
        for interaction in interactions:
            if not interaction.is_click or interaction.element.tag != "a":
                continue
            url = self._category_url(interaction)
            if not url:
                continue
            path = url_patterns.category_path_from_url(url)
            if not path:
                continue

            segments = path.split("/")
            if path in graph and not graph.nodes[path]["implicit"]:
                data = graph.nodes[path]
                data["interaction_count"] += 1
                if url_patterns.page_url(url) not in data["urls"]:
                    data["urls"].append(url_patterns.page_url(url))
            else:
                graph.add_node(
                    path,
                    name=interaction.text or self._name_from_segment(segments[-1]),
                    level=len(segments) - 1,
                    urls=[url_patterns.page_url(url)],
                    interaction_count=1,
                    implicit=False,
                )
            self._link_parents(graph, segments)
        return graph

    def _link_parents(self, graph: nx.DiGraph, segments: List[str]) -> None:
        for depth in range(len(segments) - 1, 0, -1):
            child = "/".join(segments[:depth + 1])
            parent = "/".join(segments[:depth])
            if parent not in graph:
                graph.add_node(
                    parent,
                    name=self._name_from_segment(segments[depth - 1]),
                    level=depth - 1,
                    urls=[],
                    interaction_count=0,
                    implicit=True,
                )
            graph.add_edge(parent, child)

    @staticmethod
    def _category_url(interaction: ParsedInteraction) -> Optional[str]:
        href = str(interaction.element.attributes.get("href") or "")
        for candidate in (href, interaction.url):
            if candidate and url_patterns.parse_url(candidate) and url_patterns.is_category_url(candidate):
                return candidate
        return None

    @staticmethod
    def _name_from_segment(segment: str) -> str:
        return segment.replace("-", " ").replace("_", " ").title()

    @staticmethod
    def _node_from_graph(graph: nx.DiGraph, path: str) -> CategoryNode:
        data = graph.nodes[path]
        parents = list(graph.predecessors(path))
        return CategoryNode(
            path=path,
            name=data["name"],
            level=data["level"],
            parent_path=parents[0] if parents else None,
            urls=list(data["urls"]),
            interaction_count=data["interaction_count"],
            implicit=data["implicit"],
        )

    # Navigation inventory

    def classify_section(self, interaction: ParsedInteraction) -> str:
        """footer | secondary | primary by container class hints and text."""
        classes = interaction.element.class_name.lower()
        if "footer" in classes or interaction.element.tag == "footer":
            return "footer"
        vocab = self.heuristics.vocabulary
        if "sub" in classes or "secondary" in classes:
            return "secondary"
        if find_phrase(interaction.text, vocab.sale_terms) or find_phrase(interaction.text, vocab.featured_terms):
            return "secondary"
        return "primary"

    @staticmethod
    def element_type(interaction: ParsedInteraction) -> str:
        tag = interaction.element.tag
        if tag == "a":
            return "link"
        if tag == "button":
            return "button"
        if "dropdown" in interaction.element.class_name.lower():
            return "dropdown"
        return "menu"

    def navigation_inventory(self, interactions: Sequence[ParsedInteraction]) -> Dict[str, List[NavigationItem]]:
        items: Dict[Tuple[str, str], NavigationItem] = OrderedDict()
        for interaction in interactions:
            if not interaction.is_click or not interaction.text:
                continue
            classes = interaction.element.class_name.lower()
            if interaction.element.tag not in NAV_TAGS and not any(h in classes for h in NAV_CLASS_HINTS):
                continue
            section = self.classify_section(interaction)
            key = (section, interaction.text.lower())
            item = items.get(key)
            if item is None:
                href = str(interaction.element.attributes.get("href") or "")
                item = NavigationItem(
                    text=interaction.text,
                    url=href or interaction.url,
                    section=section,
                    element_type=self.element_type(interaction),
                )
                items[key] = item
            item.click_count += 1

        sections: Dict[str, List[NavigationItem]] = {"primary": [], "secondary": [], "footer": []}
        for item in items.values():
            sections[item.section].append(item)
        return sections

    # Cross-page analysis

    @staticmethod
    def cross_page_relationships(interactions: Sequence[ParsedInteraction]) -> List[PageTransition]:
        """Transitions between consecutive distinct pages with their trigger click."""
        transitions: Dict[Tuple[str, str], PageTransition] = OrderedDict()
        previous = None
        for interaction in interactions:
            if not interaction.url:
                continue
            if previous is not None:
                from_url = url_patterns.page_url(previous.url)
                to_url = url_patterns.page_url(interaction.url)
                if from_url != to_url:
                    transition = transitions.get((from_url, to_url))
                    if transition is None:
                        transition = PageTransition(
                            from_url=from_url,
                            to_url=to_url,
                            from_page_type=url_patterns.page_type_for_url(previous.url),
                            to_page_type=url_patterns.page_type_for_url(interaction.url),
                            trigger_text=previous.text,
                        )
                        transitions[(from_url, to_url)] = transition
                    transition.count += 1
            previous = interaction
        return list(transitions.values())

    @staticmethod
    def analyze_url_patterns(
        interactions: Sequence[ParsedInteraction],
        transitions: Sequence[PageTransition]
    ) -> Dict[str, Dict[str, int]]:
        """Routing prefixes, query parameter names and page-type flow counts."""
        routing = Counter()
        params = Counter()
        seen = set()
        for interaction in interactions:
            url = interaction.url
            if not url or url in seen:
                continue
            seen.add(url)
            parsed = url_patterns.parse_url(url)
            if parsed is None:
                continue
            segments = [s for s in parsed.path.split("/") if s]
            routing[f"/{segments[0]}" if segments else "/"] += 1
            for name in url_patterns.query_params(url):
                params[name] += 1

        flow = Counter()
        for t in transitions:
            flow[f"{t.from_page_type}->{t.to_page_type}"] += t.count

        return {
            "routingPatterns": dict(routing),
            "queryParameters": dict(params),
            "pageTypeFlow": dict(flow),
        }
