from __future__ import annotations
import json
import logging
import math
import itertools
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import List, Tuple, Optional, Dict, Any, Callable, Iterator, Iterable

logger = logging.getLogger(__name__)

Pair = Tuple[int, int]


def segments_intersect(a, b, c, d) -> bool:
    """
    Проверить, пересекаются ли отрезки a-b и c-d.

    Параллельные и коллинеарные отрезки считаются непересекающимися.
    Касание в конце отрезка считается пересечением.

    Args:
        a (tuple): Начало первого отрезка (x, y).
        b (tuple): Конец первого отрезка (x, y).
        c (tuple): Начало второго отрезка (x, y).
        d (tuple): Конец второго отрезка (x, y).

    Returns:
        bool: True, если отрезки пересекаются.
    """
    return _intersection_params(a, b, c, d) is not None


def _intersection_params(a, b, c, d) -> Optional[Tuple[float, float]]:
    (x1, y1), (x2, y2) = a, b
    (x3, y3), (x4, y4) = c, d
    denom = (y4 - y3) * (x2 - x1) - (x4 - x3) * (y2 - y1)
    if denom == 0:
        return None
    ua = ((x4 - x3) * (y1 - y3) - (y4 - y3) * (x1 - x3)) / denom
    ub = ((x2 - x1) * (y1 - y3) - (y2 - y1) * (x1 - x3)) / denom
    if 0 <= ua <= 1 and 0 <= ub <= 1:
        return ua, ub
    return None


def segment_intersection_point(a, b, c, d) -> Optional[Point2D]:
    """
    Найти точку пересечения двух отрезков.

    Args:
        a (tuple): Начало первого отрезка (x, y).
        b (tuple): Конец первого отрезка (x, y).
        c (tuple): Начало второго отрезка (x, y).
        d (tuple): Конец второго отрезка (x, y).

    Returns:
        Point2D: Точка пересечения или None, если отрезки не пересекаются.
    """
    params = _intersection_params(a, b, c, d)
    if params is None:
        return None
    ua, _ = params
    ix = a[0] + ua * (b[0] - a[0])
    iy = a[1] + ua * (b[1] - a[1])
    return Point2D(round(ix, 12), round(iy, 12))


def point_to_segment_distance(p, a, b) -> float:
    """
    Вычислить минимальное расстояние от точки до отрезка.

    Args:
        p (tuple): Точка (x, y).
        a (tuple): Начало отрезка (x, y).
        b (tuple): Конец отрезка (x, y).

    Returns:
        float: Минимальное расстояние от точки до отрезка.
    """
    ax, ay = a
    bx, by = b
    px, py = p
    dx, dy = bx - ax, by - ay
    if dx == dy == 0:
        return math.hypot(px - ax, py - ay)
    t = ((px - ax) * dx + (py - ay) * dy) / (dx * dx + dy * dy)
    t = max(0, min(1, t))
    proj_x = ax + t * dx
    proj_y = ay + t * dy
    return math.hypot(px - proj_x, py - proj_y)


def _plural(n: int, one: str, few: str, many: str) -> str:
    if n % 10 == 1 and n % 100 != 11:
        return one
    if 2 <= n % 10 <= 4 and not 12 <= n % 100 <= 14:
        return few
    return many


@dataclass(frozen=True, eq=True)
class Point2D:
    """
    Точка на листе в нормированных координатах.

    Attributes:
        x (float): Координата X (0 - левый край листа).
        y (float): Координата Y (0 - верхний край листа).
    """

    x: float
    y: float

    def __iter__(self):
        """Позволяет распаковывать точку как кортеж (x, y)."""
        yield self.x
        yield self.y

    def __sub__(self, other: "Point2D") -> "Point2D":
        return Point2D(self.x - other.x, self.y - other.y)

    def __repr__(self) -> str:
        """Возвращает строковое представление точки.

        Returns:
            Строка вида "P(x.xxxxxx, y.xxxxxx)".
        """
        return f"P({self.x:.6f}, {self.y:.6f})"

    def length(self) -> float:
        """
        Вычислить длину вектора от начала координат до точки.

        Returns:
            float: Длина вектора.
        """
        return math.hypot(self.x, self.y)

    def distance_to(self, other: "Point2D") -> float:
        """
        Вычислить расстояние до другой точки.

        Args:
            other (Point2D): Другая точка.

        Returns:
            float: Расстояние между точками.
        """
        return (self - other).length()


@dataclass
class Vertex:
    """
    Вершина графа складок.

    Смежность хранится в виде идентификаторов, а не ссылок на объекты,
    поэтому удаление и сериализация не требуют разрыва циклов.

    Attributes:
        vid (int): Идентификатор вершины в графе.
        p (Point2D): Координаты вершины.
        incident_edges (list): Идентификаторы инцидентных рёбер.
        neighboring_vertices (list): Идентификаторы соседних вершин.
        selected (bool): Вершина выбрана как первый конец нового ребра.
    """

    vid: int
    p: Point2D
    incident_edges: List[int] = field(default_factory=list, repr=False)
    neighboring_vertices: List[int] = field(default_factory=list, repr=False)
    selected: bool = field(default=False, repr=False)

    @property
    def x(self) -> float:
        return self.p.x

    @property
    def y(self) -> float:
        return self.p.y

    def degree(self) -> int:
        """
        Получить степень вершины (количество инцидентных рёбер).

        Returns:
            int: Количество рёбер.
        """
        return len(self.incident_edges)


@dataclass(frozen=True)
class Edge:
    """
    Неориентированное ребро между двумя различными вершинами.

    Attributes:
        eid (int): Идентификатор ребра в графе.
        endpoint1 (int): Идентификатор первой вершины.
        endpoint2 (int): Идентификатор второй вершины.
    """

    eid: int
    endpoint1: int
    endpoint2: int

    def __post_init__(self):
        """
        Проверить, что ребро не является петлёй.

        Raises:
            ValueError: Если концы ребра совпадают.
        """
        if self.endpoint1 == self.endpoint2:
            raise ValueError("Self-loop edge")

    @property
    def endpoints(self) -> Tuple[int, int]:
        return (self.endpoint1, self.endpoint2)

    def other(self, vid: int) -> int:
        """
        Получить противоположный конец ребра.

        Args:
            vid (int): Один из концов ребра.

        Returns:
            int: Другой конец ребра.
        """
        return self.endpoint2 if vid == self.endpoint1 else self.endpoint1

    def shares_endpoint(self, other: "Edge") -> bool:
        return bool(set(self.endpoints) & set(other.endpoints))


class GraphModel:
    """
    Плоский граф складок: вершины, рёбра и смежность.

    Вершины и рёбра хранятся в словарях по идентификаторам в порядке
    добавления. Идентификаторы не переиспользуются, поэтому порядок
    идентификаторов рёбер совпадает с их порядком в коллекции.

    Attributes:
        _vertices (dict): Вершины по идентификатору.
        _edges (dict): Рёбра по идентификатору.
    """

    def __init__(self):
        self._vertices: Dict[int, Vertex] = {}
        self._edges: Dict[int, Edge] = {}
        self._vertex_ids = itertools.count()
        self._edge_ids = itertools.count()

    def __len__(self) -> int:
        return len(self._vertices)

    def __repr__(self) -> str:
        return f"GraphModel(V={len(self._vertices)}, E={len(self._edges)})"

    @property
    def vertices(self) -> List[Vertex]:
        return list(self._vertices.values())

    @property
    def edges(self) -> List[Edge]:
        return list(self._edges.values())

    def vertex_ids(self) -> List[int]:
        return list(self._vertices)

    def edge_ids(self) -> List[int]:
        return list(self._edges)

    def vertex(self, vid: int) -> Optional[Vertex]:
        return self._vertices.get(vid)

    def edge(self, eid: int) -> Optional[Edge]:
        return self._edges.get(eid)

    def has_vertex(self, vid: int) -> bool:
        return vid in self._vertices

    def has_edge(self, eid: int) -> bool:
        return eid in self._edges

    def degree(self, vid: int) -> int:
        return self._vertices[vid].degree()

    def segment(self, eid: int) -> Tuple[Point2D, Point2D]:
        """
        Получить координаты концов ребра.

        Args:
            eid (int): Идентификатор ребра.

        Returns:
            tuple: Пара точек (p1, p2).
        """
        edge = self._edges[eid]
        return self._vertices[edge.endpoint1].p, self._vertices[edge.endpoint2].p

    def add_vertex(self, x: float, y: float) -> int:
        """
        Добавить вершину без рёбер.

        Args:
            x (float): Координата X.
            y (float): Координата Y.

        Returns:
            int: Идентификатор новой вершины.
        """
        vid = next(self._vertex_ids)
        self._vertices[vid] = Vertex(vid, Point2D(x, y))
        return vid

    def remove_vertex(self, vid: int) -> List[int]:
        """
        Удалить вершину вместе со всеми инцидентными рёбрами.

        Повторное удаление ничего не делает.

        Args:
            vid (int): Идентификатор вершины.

        Returns:
            list: Идентификаторы удалённых рёбер.
        """
        vertex = self._vertices.get(vid)
        if vertex is None:
            return []
        removed = list(vertex.incident_edges)
        for eid in removed:
            self.remove_edge(eid)
        del self._vertices[vid]
        return removed

    def add_edge(self, a: int, b: int) -> Optional[int]:
        """
        Соединить две вершины ребром.

        Args:
            a (int): Первая вершина.
            b (int): Вторая вершина.

        Returns:
            int: Идентификатор нового ребра или None, если ребро было бы
                 петлёй, дубликатом или ссылается на несуществующую вершину.
        """
        if a == b:
            logger.debug("Rejected self-loop at vertex %s", a)
            return None
        va = self._vertices.get(a)
        vb = self._vertices.get(b)
        if va is None or vb is None:
            logger.debug("Rejected edge %s-%s: unknown vertex", a, b)
            return None
        if b in va.neighboring_vertices:
            logger.debug("Rejected duplicate edge %s-%s", a, b)
            return None
        eid = next(self._edge_ids)
        self._edges[eid] = Edge(eid, a, b)
        va.incident_edges.append(eid)
        vb.incident_edges.append(eid)
        va.neighboring_vertices.append(b)
        vb.neighboring_vertices.append(a)
        return eid

    def remove_edge(self, eid: int) -> bool:
        """
        Удалить ребро и обновить смежность обоих концов.

        Args:
            eid (int): Идентификатор ребра.

        Returns:
            bool: True, если ребро было удалено.
        """
        edge = self._edges.pop(eid, None)
        if edge is None:
            return False
        v1 = self._vertices[edge.endpoint1]
        v2 = self._vertices[edge.endpoint2]
        v1.incident_edges.remove(eid)
        v2.incident_edges.remove(eid)
        v1.neighboring_vertices.remove(edge.endpoint2)
        v2.neighboring_vertices.remove(edge.endpoint1)
        return True

    def move_vertex(self, vid: int, x: float, y: float):
        """
        Переместить вершину. Топология не меняется.

        Args:
            vid (int): Идентификатор вершины.
            x (float): Новая координата X.
            y (float): Новая координата Y.
        """
        self._vertices[vid].p = Point2D(x, y)

    def vertices_near(self, x: float, y: float, radius: float) -> List[int]:
        """
        Найти все вершины в пределах радиуса от точки.

        Args:
            x (float): Координата X точки.
            y (float): Координата Y точки.
            radius (float): Радиус поиска (включительно).

        Returns:
            list: Идентификаторы найденных вершин.
        """
        p = Point2D(x, y)
        return [
            vid for vid, v in self._vertices.items() if v.p.distance_to(p) <= radius
        ]

    def find_vertex_near(self, x: float, y: float, radius: float) -> Optional[int]:
        """
        Найти ближайшую к точке вершину в пределах радиуса.

        Args:
            x (float): Координата X точки.
            y (float): Координата Y точки.
            radius (float): Радиус поиска.

        Returns:
            int: Идентификатор вершины или None.
        """
        p = Point2D(x, y)
        candidates = self.vertices_near(x, y, radius)
        if not candidates:
            return None
        return min(candidates, key=lambda vid: self._vertices[vid].p.distance_to(p))

    def edges_near(self, x: float, y: float, threshold: float) -> List[int]:
        """
        Найти рёбра, расстояние до которых меньше порога.

        Args:
            x (float): Координата X точки.
            y (float): Координата Y точки.
            threshold (float): Порог расстояния.

        Returns:
            list: Идентификаторы найденных рёбер.
        """
        found = []
        for eid in self._edges:
            a, b = self.segment(eid)
            if point_to_segment_distance((x, y), tuple(a), tuple(b)) < threshold:
                found.append(eid)
        return found

    def check_consistency(self) -> List[str]:
        """
        Проверить согласованность смежности с коллекцией рёбер.

        Returns:
            list: Описания найденных нарушений; пустой список, если граф корректен.
        """
        problems = []
        pairs = set()
        for eid, edge in self._edges.items():
            for end in edge.endpoints:
                if end not in self._vertices:
                    problems.append(f"edge {eid} references missing vertex {end}")
            key = frozenset(edge.endpoints)
            if key in pairs:
                problems.append(f"edge {eid} duplicates {sorted(key)}")
            pairs.add(key)
            if any(end not in self._vertices for end in edge.endpoints):
                continue
            for end in edge.endpoints:
                vertex = self._vertices[end]
                if eid not in vertex.incident_edges:
                    problems.append(f"edge {eid} missing from vertex {end}")
                if edge.other(end) not in vertex.neighboring_vertices:
                    problems.append(
                        f"vertex {edge.other(end)} missing from neighbours of {end}"
                    )
        for vid, vertex in self._vertices.items():
            if len(vertex.incident_edges) != len(vertex.neighboring_vertices):
                problems.append(f"vertex {vid} adjacency lists differ in length")
            for eid in vertex.incident_edges:
                edge = self._edges.get(eid)
                if edge is None or vid not in edge.endpoints:
                    problems.append(f"vertex {vid} lists foreign edge {eid}")
        return problems

    @classmethod
    def from_snapshot(cls, snapshot: "Snapshot") -> "GraphModel":
        """
        Построить граф из канонического снимка.

        Смежность выводится заново. Пары индексов вне диапазона, петли и
        повторы пропускаются с предупреждением.

        Args:
            snapshot (Snapshot): Снимок графа.

        Returns:
            GraphModel: Новый граф.
        """
        graph = cls()
        ids = [graph.add_vertex(x, y) for x, y in snapshot.vertices_coords]
        for i, j in snapshot.edges_vertices:
            if not (0 <= i < len(ids) and 0 <= j < len(ids)):
                logger.warning("Invalid vertex indices in edge: %s", [i, j])
                continue
            if graph.add_edge(ids[i], ids[j]) is None:
                logger.warning("Skipped degenerate or repeated edge: %s", [i, j])
        return graph


class IntersectionValidator:
    """
    Поиск пересекающихся рёбер графа.

    Рёбра с общей вершиной никогда не пересекаются: это общая точка
    сгиба, а не пересечение. Пары хранятся упорядоченными по
    идентификатору ребра.
    """

    def __init__(self, graph: GraphModel):
        self.graph = graph

    @staticmethod
    def canonical_pair(e1: int, e2: int) -> Pair:
        return (e1, e2) if e1 < e2 else (e2, e1)

    def intersects(self, e1: int, e2: int) -> bool:
        """
        Проверить, пересекаются ли два ребра.

        Args:
            e1 (int): Первое ребро.
            e2 (int): Второе ребро.

        Returns:
            bool: True, если рёбра пересекаются и не имеют общей вершины.
        """
        edge1 = self.graph.edge(e1)
        edge2 = self.graph.edge(e2)
        if edge1 is None or edge2 is None or e1 == e2:
            return False
        if edge1.shares_endpoint(edge2):
            return False
        a, b = self.graph.segment(e1)
        c, d = self.graph.segment(e2)
        return segments_intersect(tuple(a), tuple(b), tuple(c), tuple(d))

    def intersection_point(self, e1: int, e2: int) -> Optional[Point2D]:
        """
        Найти точку пересечения двух рёбер (для отметки на листе).

        Args:
            e1 (int): Первое ребро.
            e2 (int): Второе ребро.

        Returns:
            Point2D: Точка пересечения или None.
        """
        if not self.intersects(e1, e2):
            return None
        a, b = self.graph.segment(e1)
        c, d = self.graph.segment(e2)
        return segment_intersection_point(tuple(a), tuple(b), tuple(c), tuple(d))

    def full_rebuild(self) -> List[Pair]:
        """
        Проверить все пары рёбер.

        Returns:
            list: Отсортированный список пар пересекающихся рёбер.
        """
        return [
            (e1, e2)
            for e1, e2 in itertools.combinations(self.graph.edge_ids(), 2)
            if self.intersects(e1, e2)
        ]

    def validate_edge(self, eid: int, pairs: Iterable[Pair]) -> List[Pair]:
        """
        Обновить список пересечений после изменения одного ребра.

        Все пары с этим ребром удаляются, затем ребро проверяется
        против всех остальных.

        Args:
            eid (int): Созданное или сдвинутое ребро.
            pairs (list): Текущий список пар.

        Returns:
            list: Новый отсортированный список пар.
        """
        kept = {pair for pair in pairs if eid not in pair}
        if self.graph.has_edge(eid):
            for other in self.graph.edge_ids():
                if other != eid and self.intersects(eid, other):
                    kept.add(self.canonical_pair(eid, other))
        return sorted(kept)


class DegreeValidator:
    """Поиск вершин, у которых меньше двух рёбер."""

    MIN_DEGREE = 2

    @classmethod
    def low_degree(cls, graph: GraphModel) -> List[int]:
        return [v.vid for v in graph.vertices if v.degree() < cls.MIN_DEGREE]


@dataclass
class ErrorState:
    """
    Результаты проверок для отображения.

    Attributes:
        low_degree_vertices (list): Вершины со степенью меньше 2.
        intersecting_edges (list): Пары пересекающихся рёбер.
    """

    low_degree_vertices: List[int] = field(default_factory=list)
    intersecting_edges: List[Pair] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.low_degree_vertices) + len(self.intersecting_edges)

    def is_clean(self) -> bool:
        return self.total == 0

    def refresh(self, graph: GraphModel):
        """
        Полностью пересчитать обе проверки.

        Args:
            graph (GraphModel): Проверяемый граф.
        """
        self.refresh_degrees(graph)
        self.intersecting_edges = IntersectionValidator(graph).full_rebuild()

    def refresh_degrees(self, graph: GraphModel):
        self.low_degree_vertices = DegreeValidator.low_degree(graph)

    def refresh_edge(self, graph: GraphModel, eid: int):
        self.intersecting_edges = IntersectionValidator(graph).validate_edge(
            eid, self.intersecting_edges
        )

    def forget_edges(self, eids: Iterable[int]):
        """
        Убрать пары, в которых участвуют удалённые рёбра.

        Args:
            eids (list): Идентификаторы удалённых рёбер.
        """
        gone = set(eids)
        self.intersecting_edges = [
            pair for pair in self.intersecting_edges if not gone.intersection(pair)
        ]

    def messages(self) -> List[str]:
        """
        Сформировать строки индикатора ошибок.

        Returns:
            list: Строки с описанием каждой найденной проблемы.
        """
        result = []
        low = len(self.low_degree_vertices)
        if low:
            result.append(
                f"- У {low} {_plural(low, 'вершины', 'вершин', 'вершин')} "
                "не хватает рёбер (у каждой вершины должно быть 2 ребра)."
            )
        crossing = len(self.intersecting_edges)
        if crossing:
            result.append(
                f"- {crossing} {_plural(crossing, 'пара', 'пары', 'пар')} рёбер "
                "пересекается (рёбра не должны пересекаться)."
            )
        return result

    def summary(self) -> str:
        if self.is_clean():
            return "Ошибок нет"
        total = self.total
        head = f"({total} {_plural(total, 'ошибка', 'ошибки', 'ошибок')})"
        return "\n".join([head] + self.messages())


@dataclass(frozen=True)
class Snapshot:
    """
    Канонический снимок графа без ссылок на живые объекты.

    Attributes:
        vertices_coords (tuple): Координаты (x, y); индекс вершины - позиция.
        edges_vertices (tuple): Пары индексов вершин для каждого ребра.
    """

    vertices_coords: Tuple[Tuple[float, float], ...] = ()
    edges_vertices: Tuple[Pair, ...] = ()

    @classmethod
    def from_graph(cls, graph: GraphModel) -> "Snapshot":
        """
        Сериализовать граф в текущем порядке вершин.

        Рёбра, концы которых не найдены среди вершин, пропускаются с
        предупреждением.

        Args:
            graph (GraphModel): Граф для сериализации.

        Returns:
            Snapshot: Неизменяемый снимок.
        """
        index = {vid: i for i, vid in enumerate(graph.vertex_ids())}
        coords = tuple((v.x, v.y) for v in graph.vertices)
        pairs = []
        for edge in graph.edges:
            i = index.get(edge.endpoint1)
            j = index.get(edge.endpoint2)
            if i is None or j is None:
                logger.warning(
                    "Edge %s references a vertex that is not in the graph "
                    "(start found: %s, end found: %s)",
                    edge.eid,
                    i is not None,
                    j is not None,
                )
                continue
            pairs.append((i, j))
        return cls(coords, tuple(pairs))

    @classmethod
    def from_state(cls, state: Dict[str, Any]) -> "Snapshot":
        """Собрать снимок из уже проверенного словаря состояния."""
        return cls(
            tuple((float(x), float(y)) for x, y in state["vertices_coords"]),
            tuple((int(i), int(j)) for i, j in state["edges_vertices"]),
        )

    def to_state(self) -> Dict[str, Any]:
        return {
            "vertices_coords": [[x, y] for x, y in self.vertices_coords],
            "edges_vertices": [[i, j] for i, j in self.edges_vertices],
        }


class HistoryManager:
    """
    Линейная история правок для undo/redo.

    Хранит только неизменяемые снимки, поэтому правка рабочего графа
    после save_state не может испортить историю.

    Attributes:
        states (list): Снимки; states[0] - пустой граф.
        reasons (list): Причина каждого сохранения.
        current_index (int): Индекс текущего снимка.
    """

    def __init__(self):
        self.states: List[Snapshot] = [Snapshot()]
        self.reasons: List[str] = [""]
        self.current_index = 0

    def __len__(self) -> int:
        return len(self.states)

    @property
    def current(self) -> Snapshot:
        return self.states[self.current_index]

    def save_state(self, graph: GraphModel, reason: str = ""):
        """
        Сохранить снимок графа после завершённой правки.

        Ветка redo отбрасывается.

        Args:
            graph (GraphModel): Рабочий граф.
            reason (str): Описание правки.
        """
        del self.states[self.current_index + 1 :]
        del self.reasons[self.current_index + 1 :]
        snapshot = Snapshot.from_graph(graph)
        self.states.append(snapshot)
        self.reasons.append(reason)
        self.current_index += 1
        logger.debug(
            "History updated, index=%d (V=%d, E=%d), reason: %s",
            self.current_index,
            len(snapshot.vertices_coords),
            len(snapshot.edges_vertices),
            reason,
        )

    def can_undo(self) -> bool:
        return self.current_index > 0

    def can_redo(self) -> bool:
        return self.current_index < len(self.states) - 1

    def undo_reason(self) -> Optional[str]:
        """
        Получить описание правки, которую отменит undo.

        Returns:
            str: Причина текущего снимка или None, если отменять нечего.
        """
        if not self.can_undo():
            return None
        return self.reasons[self.current_index]

    def redo_reason(self) -> Optional[str]:
        if not self.can_redo():
            return None
        return self.reasons[self.current_index + 1]

    def undo(self) -> Optional[GraphModel]:
        """
        Вернуться к предыдущему снимку.

        Returns:
            GraphModel: Восстановленный граф или None, если отменять нечего.
        """
        if not self.can_undo():
            return None
        self.current_index -= 1
        return GraphModel.from_snapshot(self.current)

    def redo(self) -> Optional[GraphModel]:
        """
        Перейти к следующему снимку.

        Returns:
            GraphModel: Восстановленный граф или None, если повторять нечего.
        """
        if not self.can_redo():
            return None
        self.current_index += 1
        return GraphModel.from_snapshot(self.current)


class StateError(ValueError):
    """
    Ошибка во входном состоянии графа.

    Attributes:
        index (int): Индекс ошибочного элемента или None.
    """

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message)
        self.index = index


class InvalidShapeError(StateError):
    pass


class InvalidVertexError(StateError):
    pass


class InvalidEdgeError(StateError):
    pass


class OutOfBoundsError(StateError):
    pass


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_pair(value) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) == 2
        and all(_is_number(v) for v in value)
    )


def _is_index(value, count: int) -> bool:
    if isinstance(value, float) and not value.is_integer():
        return False
    return 0 <= value < count


def validate_state(state) -> Snapshot:
    """
    Проверить словарь состояния и собрать из него снимок.

    Args:
        state (dict): Словарь с ключами vertices_coords и edges_vertices.

    Returns:
        Snapshot: Проверенный снимок.

    Raises:
        InvalidShapeError: Если поля не являются списками.
        InvalidVertexError: Если координаты вершины не пара чисел.
        InvalidEdgeError: Если ребро не пара чисел, петля или повтор.
        OutOfBoundsError: Если ребро ссылается на несуществующую вершину.
    """
    if not isinstance(state, dict):
        raise InvalidShapeError("state must be a mapping")
    coords = state.get("vertices_coords")
    edges = state.get("edges_vertices")
    if not isinstance(coords, (list, tuple)):
        raise InvalidShapeError("vertices_coords must be an array")
    if not isinstance(edges, (list, tuple)):
        raise InvalidShapeError("edges_vertices must be an array")

    for i, coord in enumerate(coords):
        if not _is_pair(coord):
            raise InvalidVertexError(
                f"Invalid vertex coordinate at index {i}. "
                "Must be [x, y] with numeric values.",
                i,
            )

    seen = set()
    count = len(coords)
    for i, pair in enumerate(edges):
        if not _is_pair(pair):
            raise InvalidEdgeError(
                f"Invalid edge at index {i}. "
                "Must be [startIdx, endIdx] with numeric values.",
                i,
            )
        start, end = pair
        if not (_is_index(start, count) and _is_index(end, count)):
            raise OutOfBoundsError(
                f"Edge at index {i} has out-of-bounds vertex indices.", i
            )
        if start == end:
            raise InvalidEdgeError(f"Edge at index {i} is a self-loop.", i)
        key = frozenset((int(start), int(end)))
        if key in seen:
            raise InvalidEdgeError(f"Edge at index {i} repeats an earlier edge.", i)
        seen.add(key)

    return Snapshot.from_state({"vertices_coords": coords, "edges_vertices": edges})


class StateSyncPort:
    """
    Программный доступ к каноническому состоянию сессии.

    Attributes:
        session (EditSession): Сессия, чей граф читается и заменяется.
    """

    def __init__(self, session: "EditSession"):
        self.session = session

    def get_state(self) -> Dict[str, Any]:
        return Snapshot.from_graph(self.session.graph).to_state()

    def set_state(self, state: Dict[str, Any]):
        """
        Заменить рабочий граф графом из состояния.

        При ошибке граф не меняется.

        Args:
            state (dict): Словарь с ключами vertices_coords и edges_vertices.

        Raises:
            StateError: Если состояние некорректно.
        """
        snapshot = validate_state(state)
        self.session.replace_graph(GraphModel.from_snapshot(snapshot), "set state")
        logger.info(
            "State replaced (V=%d, E=%d)",
            len(snapshot.vertices_coords),
            len(snapshot.edges_vertices),
        )

    def dumps(self) -> str:
        return json.dumps(self.get_state(), indent=2)

    def loads(self, text: str):
        """
        Заменить рабочий граф состоянием из JSON-текста.

        Args:
            text (str): JSON с полями vertices_coords и edges_vertices.

        Raises:
            StateError: Если текст не JSON или состояние некорректно.
        """
        try:
            state = json.loads(text)
        except ValueError as e:
            raise InvalidShapeError(f"state is not valid JSON: {e}") from e
        self.set_state(state)


class InputPort:
    """
    Глобальные обработчики ввода с областью действия.

    Обработчики подключаются, когда первый владелец захватывает порт, и
    отключаются, когда его отпускает последний.

    Attributes:
        attach (callable): Подключить глобальные обработчики.
        detach (callable): Отключить глобальные обработчики.
    """

    def __init__(
        self,
        attach: Optional[Callable[[], None]] = None,
        detach: Optional[Callable[[], None]] = None,
    ):
        self.attach = attach
        self.detach = detach
        self._owners = set()

    @property
    def active(self) -> bool:
        return bool(self._owners)

    def acquire(self, owner: str):
        if not self._owners and self.attach:
            self.attach()
        self._owners.add(owner)

    def release(self, owner: str):
        if owner not in self._owners:
            return
        self._owners.discard(owner)
        if not self._owners and self.detach:
            self.detach()

    @contextmanager
    def held(self, owner: str) -> Iterator["InputPort"]:
        self.acquire(owner)
        try:
            yield self
        finally:
            self.release(owner)


KEY_NAMES = {"Space": 32, "Escape": 27}


def parse_hotkey(text: str) -> Tuple[bool, bool, int]:
    """
    Разобрать сочетание клавиш вида "Ctrl+Shift+Z".

    Args:
        text (str): Сочетание клавиш.

    Returns:
        tuple: (ctrl, shift, код клавиши).

    Raises:
        ValueError: Если клавиша не распознана.
    """
    *modifiers, key = text.split("+")
    if key in KEY_NAMES:
        code = KEY_NAMES[key]
    elif len(key) == 1:
        code = ord(key.upper())
    else:
        raise ValueError(f"Unknown key: {key}")
    return "Ctrl" in modifiers, "Shift" in modifiers, code


@dataclass
class EditorConfig:
    """
    Константы отображения и взаимодействия.

    Размеры заданы в долях стороны листа.
    """

    vertex_radius: float = 0.005
    edge_width: float = 0.005
    paper_border_width: float = 0.01
    vertex_pick_factor: float = 1.1
    eraser_factor: float = 2.0
    max_degree: int = 2
    min_vertices_for_edges: int = 2
    margin: int = 30
    hotkeys: Dict[str, str] = field(
        default_factory=lambda: {
            "add-vertex": "A",
            "move-vertex": "S",
            "add-edge": "Space",
            "undo": "Ctrl+Z",
            "redo": "Ctrl+Shift+Z",
            "redo-alt": "Ctrl+Y",
            "cancel": "Escape",
        }
    )

    @property
    def pick_radius(self) -> float:
        return self.vertex_pick_factor * self.vertex_radius

    @property
    def eraser_threshold(self) -> float:
        return self.eraser_factor * self.edge_width

    def action_for_key(
        self, code: int, ctrl: bool = False, shift: bool = False
    ) -> Optional[str]:
        """
        Найти действие, назначенное нажатой клавише.

        Args:
            code (int): Код клавиши (для букв - код заглавной буквы).
            ctrl (bool): Нажат ли Ctrl.
            shift (bool): Нажат ли Shift.

        Returns:
            str: Имя действия из hotkeys или None.
        """
        for action, text in self.hotkeys.items():
            if parse_hotkey(text) == (ctrl, shift, code):
                return action
        return None


@dataclass
class DragState:
    vid: int
    offset_x: float
    offset_y: float
    start: Point2D


class EditSession:
    """
    Сессия редактирования: граф, проверки, история и модальное состояние.

    Каждая правка применяется к графу целиком, затем пересчитываются
    проверки и сохраняется снимок в историю.

    Attributes:
        graph (GraphModel): Рабочий граф.
        errors (ErrorState): Результаты проверок.
        history (HistoryManager): История правок.
        tool (str): Текущий инструмент.
        first_endpoint (int): Первая вершина создаваемого ребра или None.
        drag (DragState): Перетаскиваемая вершина или None.
        pointer_port (InputPort): Отпускание кнопки мыши в любом месте.
        key_port (InputPort): Клавиша Escape в любом месте.
    """

    TOOL_ADD_VERTEX = "add-vertex"
    TOOL_MOVE_VERTEX = "move-vertex"
    TOOL_ADD_EDGE = "add-edge"
    TOOLS = (TOOL_ADD_VERTEX, TOOL_MOVE_VERTEX, TOOL_ADD_EDGE)

    def __init__(
        self,
        config: Optional[EditorConfig] = None,
        pointer_port: Optional[InputPort] = None,
        key_port: Optional[InputPort] = None,
    ):
        self.config = config or EditorConfig()
        self.graph = GraphModel()
        self.errors = ErrorState()
        self.history = HistoryManager()
        self.pointer_port = pointer_port or InputPort()
        self.key_port = key_port or InputPort()
        self.tool = self.TOOL_ADD_VERTEX
        self.first_endpoint: Optional[int] = None
        self.drag: Optional[DragState] = None
        self.listeners: List[Callable[["EditSession"], None]] = []

    def subscribe(self, callback: Callable[["EditSession"], None]):
        self.listeners.append(callback)

    def _notify(self):
        for callback in self.listeners:
            callback(self)

    def commit(self, reason: str):
        """Сохранить текущий граф в историю и уведомить подписчиков."""
        self.history.save_state(self.graph, reason)
        self._notify()

    def can_add_edges(self) -> bool:
        return len(self.graph) >= self.config.min_vertices_for_edges

    def is_saturated(self, vid: int) -> bool:
        return self.graph.degree(vid) >= self.config.max_degree

    def set_tool(self, tool: str) -> bool:
        """
        Выбрать инструмент.

        Args:
            tool (str): Один из TOOLS.

        Returns:
            bool: False, если инструмент неизвестен или недоступен.
        """
        if tool not in self.TOOLS:
            return False
        if tool == self.TOOL_ADD_EDGE and not self.can_add_edges():
            return False
        if tool != self.TOOL_ADD_EDGE:
            self.cancel()
        if tool != self.TOOL_MOVE_VERTEX:
            self.end_drag()
        self.tool = tool
        self._notify()
        return True

    def add_vertex(self, x: float, y: float) -> int:
        vid = self.graph.add_vertex(x, y)
        self.errors.refresh_degrees(self.graph)
        self.commit("add vertex")
        return vid

    def remove_vertex(self, vid: int) -> bool:
        """
        Удалить вершину и инцидентные ей рёбра.

        Args:
            vid (int): Идентификатор вершины.

        Returns:
            bool: True, если вершина была в графе.
        """
        if not self.graph.has_vertex(vid):
            return False
        self._drop_vertex(vid)
        self.errors.refresh_degrees(self.graph)
        self.commit("remove vertex")
        return True

    def remove_edge(self, eid: int) -> bool:
        if not self.graph.remove_edge(eid):
            return False
        self.errors.forget_edges([eid])
        self.errors.refresh_degrees(self.graph)
        self.commit("remove edge")
        return True

    def _drop_vertex(self, vid: int):
        if vid == self.first_endpoint:
            self.cancel()
        if self.drag is not None and self.drag.vid == vid:
            self._abort_drag()
        removed = self.graph.remove_vertex(vid)
        self.errors.forget_edges(removed)

    def connect(self, a: int, b: int) -> Optional[int]:
        """
        Соединить две вершины, если это разрешено правилами редактирования.

        Насыщенные вершины (степень 2 и больше) не получают новых рёбер.

        Args:
            a (int): Первая вершина.
            b (int): Вторая вершина.

        Returns:
            int: Идентификатор нового ребра или None.
        """
        if not (self.graph.has_vertex(a) and self.graph.has_vertex(b)):
            return None
        if self.is_saturated(a) or self.is_saturated(b):
            logger.debug("Rejected edge %s-%s: saturated vertex", a, b)
            return None
        eid = self.graph.add_edge(a, b)
        if eid is None:
            return None
        self.errors.refresh_edge(self.graph, eid)
        self.errors.refresh_degrees(self.graph)
        self.commit("add edge")
        return eid

    def click_vertex(self, vid: int) -> Optional[int]:
        """
        Обработать клик по вершине инструментом "ребро".

        Первый клик выбирает начало ребра, второй создаёт ребро. Клик по
        насыщенной вершине, повторный клик по началу или по уже соседней
        вершине отменяет построение.

        Args:
            vid (int): Вершина под курсором.

        Returns:
            int: Идентификатор созданного ребра или None.
        """
        if self.tool != self.TOOL_ADD_EDGE or not self.graph.has_vertex(vid):
            return None
        first = self.first_endpoint
        if self.is_saturated(vid):
            self.cancel()
            return None
        if first is None:
            self._select_first(vid)
            return None
        if vid == first or vid in self.graph.vertex(first).neighboring_vertices:
            logger.debug("Tried to add an existing edge %s-%s", first, vid)
            self.cancel()
            return None
        self.cancel()
        return self.connect(first, vid)

    def _select_first(self, vid: int):
        self.first_endpoint = vid
        self.graph.vertex(vid).selected = True
        self.key_port.acquire("edge")
        self._notify()

    def cancel(self):
        """Отменить построение ребра."""
        if self.first_endpoint is None:
            return
        vertex = self.graph.vertex(self.first_endpoint)
        if vertex is not None:
            vertex.selected = False
        self.first_endpoint = None
        self.key_port.release("edge")
        self._notify()

    def begin_drag(self, vid: int, x: float, y: float) -> bool:
        """
        Начать перетаскивание вершины.

        Args:
            vid (int): Вершина под курсором.
            x (float): Координата X курсора.
            y (float): Координата Y курсора.

        Returns:
            bool: True, если перетаскивание началось.
        """
        if self.tool != self.TOOL_MOVE_VERTEX or not self.graph.has_vertex(vid):
            return False
        self.end_drag()
        vertex = self.graph.vertex(vid)
        self.drag = DragState(vid, x - vertex.x, y - vertex.y, vertex.p)
        self.pointer_port.acquire("drag")
        return True

    def drag_to(self, x: float, y: float):
        if self.drag is None:
            return
        vid = self.drag.vid
        self.graph.move_vertex(vid, x - self.drag.offset_x, y - self.drag.offset_y)
        for eid in self.graph.vertex(vid).incident_edges:
            self.errors.refresh_edge(self.graph, eid)
        self._notify()

    def end_drag(self) -> bool:
        """
        Завершить перетаскивание (кнопка мыши отпущена где угодно).

        Снимок сохраняется один раз, если вершина сдвинулась.

        Returns:
            bool: True, если в историю добавлен снимок.
        """
        if self.drag is None:
            return False
        drag, self.drag = self.drag, None
        self.pointer_port.release("drag")
        vertex = self.graph.vertex(drag.vid)
        if vertex is None or vertex.p == drag.start:
            self._notify()
            return False
        self.commit("move vertex")
        return True

    def _abort_drag(self):
        """Бросить перетаскивание без сохранения снимка."""
        if self.drag is None:
            return
        self.drag = None
        self.pointer_port.release("drag")

    def erase_at(self, x: float, y: float) -> bool:
        """
        Стереть вершины и рёбра рядом с точкой.

        Args:
            x (float): Координата X курсора.
            y (float): Координата Y курсора.

        Returns:
            bool: True, если что-то было удалено.
        """
        vids = self.graph.vertices_near(x, y, self.config.pick_radius)
        eids = self.graph.edges_near(x, y, self.config.eraser_threshold)
        if not vids and not eids:
            return False
        for vid in vids:
            self._drop_vertex(vid)
        for eid in eids:
            if self.graph.remove_edge(eid):
                self.errors.forget_edges([eid])
        self.errors.refresh_degrees(self.graph)
        self.commit("erase")
        return True

    def replace_graph(self, graph: GraphModel, reason: Optional[str] = None):
        """
        Заменить рабочий граф целиком и пересчитать проверки.

        Args:
            graph (GraphModel): Новый граф.
            reason (str): Причина для истории; None - не сохранять снимок.
        """
        self.cancel()
        self._abort_drag()
        self.graph = graph
        self.errors.refresh(graph)
        if self.tool == self.TOOL_ADD_EDGE and not self.can_add_edges():
            self.tool = self.TOOL_ADD_VERTEX
        if reason is None:
            self._notify()
        else:
            self.commit(reason)

    def undo(self) -> bool:
        graph = self.history.undo()
        if graph is None:
            return False
        self.replace_graph(graph)
        return True

    def redo(self) -> bool:
        graph = self.history.redo()
        if graph is None:
            return False
        self.replace_graph(graph)
        return True
