from __future__ import annotations
import wx
import logging

from foldncut import (
    EditSession,
    EditorConfig,
    InputPort,
    IntersectionValidator,
    StateError,
    StateSyncPort,
)

logger = logging.getLogger(__name__)


class EditorFrame(wx.Frame):
    """
    Главное окно редактора узора Fold N' Cut.

    Предоставляет интерфейс для:
    - Добавления вершин
    - Перетаскивания вершин
    - Соединения вершин рёбрами
    - Стирания вершин и рёбер правой кнопкой мыши
    - Отмены и повтора правок
    - Копирования и вставки состояния в формате JSON через буфер обмена

    Attributes:
        session (EditSession): Сессия редактирования.
        port (StateSyncPort): Доступ к каноническому состоянию.
        canvas (wx.Panel): Холст для рисования листа.
        pointer (tuple): Последняя позиция курсора на листе (x, y).
    """

    TOOL_LABELS = {
        EditSession.TOOL_ADD_VERTEX: "Добавить вершину",
        EditSession.TOOL_MOVE_VERTEX: "Переместить вершину",
        EditSession.TOOL_ADD_EDGE: "Добавить ребро",
    }

    def __init__(self, parent, title, config=None):
        """
        Инициализировать главное окно приложения.

        Args:
            parent: Родительское окно.
            title (str): Заголовок окна.
            config (EditorConfig): Константы отображения. По умолчанию EditorConfig().
        """
        super(EditorFrame, self).__init__(
            parent,
            title=title,
            size=(900, 700),
            style=wx.DEFAULT_FRAME_STYLE | wx.RESIZE_BORDER,
        )
        self.config = config or EditorConfig()
        self.pointer = (0.0, 0.0)
        self._paper_bounds = (0, 0, 1, 1)

        self.panel = wx.Panel(self)
        self.canvas = wx.Panel(self.panel, style=wx.FULL_REPAINT_ON_RESIZE | wx.WANTS_CHARS)
        self.canvas.SetBackgroundColour(wx.Colour(230, 230, 230))

        self.session = EditSession(
            self.config,
            pointer_port=InputPort(self.capture_pointer, self.release_pointer),
            key_port=InputPort(self.attach_escape, self.detach_escape),
        )
        self.port = StateSyncPort(self.session)

        self.control_panel = wx.Panel(self.panel)
        self.control_panel.SetBackgroundColour(wx.Colour(240, 240, 240))

        self.undo_button = wx.Button(self.control_panel, label="Назад")
        self.redo_button = wx.Button(self.control_panel, label="Вперед")
        self.undo_button.Bind(wx.EVT_BUTTON, self.on_undo)
        self.redo_button.Bind(wx.EVT_BUTTON, self.on_redo)

        hotkeys = self.config.hotkeys
        self.tool_radios = {}
        for i, tool in enumerate(EditSession.TOOLS):
            radio = wx.RadioButton(
                self.control_panel,
                label=self.TOOL_LABELS[tool],
                style=wx.RB_GROUP if i == 0 else 0,
            )
            radio.SetToolTip(f"Клавиша: {hotkeys[tool]}")
            radio.Bind(wx.EVT_RADIOBUTTON, lambda e, t=tool: self.set_tool(t))
            self.tool_radios[tool] = radio

        self.copy_button = wx.Button(self.control_panel, label="Копировать состояние")
        self.paste_button = wx.Button(self.control_panel, label="Вставить состояние")
        self.copy_button.Bind(wx.EVT_BUTTON, self.on_copy_state)
        self.paste_button.Bind(wx.EVT_BUTTON, self.on_paste_state)

        self.error_label = wx.StaticText(self.control_panel, label="")

        undo_row = wx.BoxSizer(wx.HORIZONTAL)
        undo_row.Add(self.undo_button, 1, wx.ALL, 3)
        undo_row.Add(self.redo_button, 1, wx.ALL, 3)

        ctrl_sizer = wx.BoxSizer(wx.VERTICAL)
        ctrl_sizer.Add(undo_row, 0, wx.EXPAND | wx.ALL, 5)
        ctrl_sizer.Add(wx.StaticLine(self.control_panel), 0, wx.EXPAND | wx.ALL, 5)
        for tool in EditSession.TOOLS:
            ctrl_sizer.Add(self.tool_radios[tool], 0, wx.ALL, 5)
        ctrl_sizer.Add(wx.StaticLine(self.control_panel), 0, wx.EXPAND | wx.ALL, 5)
        ctrl_sizer.Add(self.error_label, 0, wx.EXPAND | wx.ALL, 5)
        ctrl_sizer.AddStretchSpacer()
        ctrl_sizer.Add(self.copy_button, 0, wx.ALL | wx.EXPAND, 5)
        ctrl_sizer.Add(self.paste_button, 0, wx.ALL | wx.EXPAND, 5)
        self.control_panel.SetSizer(ctrl_sizer)

        main_sizer = wx.BoxSizer(wx.HORIZONTAL)
        main_sizer.Add(self.control_panel, 0, wx.EXPAND | wx.ALL, 10)
        main_sizer.Add(self.canvas, 1, wx.EXPAND)
        self.panel.SetSizer(main_sizer)

        menubar = wx.MenuBar()
        edit_menu = wx.Menu()
        undo_item = edit_menu.Append(wx.ID_UNDO, f"Назад\t{hotkeys['undo']}")
        redo_item = edit_menu.Append(wx.ID_REDO, f"Вперед\t{hotkeys['redo']}")
        edit_menu.AppendSeparator()
        copy_item = edit_menu.Append(wx.ID_COPY, "Копировать состояние\tCtrl+Shift+C")
        paste_item = edit_menu.Append(wx.ID_PASTE, "Вставить состояние\tCtrl+Shift+V")
        edit_menu.AppendSeparator()
        exit_item = edit_menu.Append(wx.ID_EXIT, "Выход")
        menubar.Append(edit_menu, "&Правка")
        self.SetMenuBar(menubar)
        self.Bind(wx.EVT_MENU, self.on_undo, undo_item)
        self.Bind(wx.EVT_MENU, self.on_redo, redo_item)
        self.Bind(wx.EVT_MENU, self.on_copy_state, copy_item)
        self.Bind(wx.EVT_MENU, self.on_paste_state, paste_item)
        self.Bind(wx.EVT_MENU, lambda e: self.Close(), exit_item)

        self.canvas.Bind(wx.EVT_PAINT, self.on_paint)
        self.canvas.Bind(wx.EVT_SIZE, self.on_resize)
        self.canvas.Bind(wx.EVT_LEFT_DOWN, self.on_left_down)
        self.canvas.Bind(wx.EVT_LEFT_UP, self.on_left_up)
        self.canvas.Bind(wx.EVT_RIGHT_DOWN, self.on_right_down)
        self.canvas.Bind(wx.EVT_MOTION, self.on_mouse_move)
        self.canvas.Bind(wx.EVT_MOUSE_CAPTURE_LOST, self.on_capture_lost)
        self.canvas.Bind(wx.EVT_KEY_DOWN, self.on_key_down)

        self.session.subscribe(self.on_session_changed)
        self.update_paper_bounds()
        self.on_session_changed(self.session)
        self.Show()

    def capture_pointer(self):
        """Перехватить мышь, чтобы отпускание кнопки за холстом тоже пришло сюда."""
        if not self.canvas.HasCapture():
            self.canvas.CaptureMouse()

    def release_pointer(self):
        if self.canvas.HasCapture():
            self.canvas.ReleaseMouse()

    def attach_escape(self):
        self.Bind(wx.EVT_CHAR_HOOK, self.on_char_hook)

    def detach_escape(self):
        self.Unbind(wx.EVT_CHAR_HOOK, handler=self.on_char_hook)

    def on_char_hook(self, event):
        """
        Обработчик клавиш уровня окна: Escape отменяет построение ребра.

        Args:
            event: Событие клавиши wxPython.
        """
        action = self.config.action_for_key(
            event.GetKeyCode(), event.ControlDown(), event.ShiftDown()
        )
        if action == "cancel":
            self.session.cancel()
            return
        event.Skip()

    def on_capture_lost(self, event):
        self.session.end_drag()

    def set_tool(self, tool):
        """
        Выбрать инструмент и обновить переключатели.

        Args:
            tool (str): Инструмент из EditSession.TOOLS.
        """
        self.session.set_tool(tool)
        self.update_tool_buttons()
        self.canvas.SetFocus()

    def update_tool_buttons(self):
        """
        Обновить переключатели инструментов и кнопки истории.
        """
        session = self.session
        for tool, radio in self.tool_radios.items():
            radio.SetValue(session.tool == tool)
        hotkeys = self.config.hotkeys
        edge_radio = self.tool_radios[EditSession.TOOL_ADD_EDGE]
        edge_radio.Enable(session.can_add_edges())
        if session.can_add_edges():
            edge_radio.SetToolTip(f"Клавиша: {hotkeys[EditSession.TOOL_ADD_EDGE]}")
        else:
            edge_radio.SetToolTip(
                f"Нужно минимум {self.config.min_vertices_for_edges} вершины"
            )

        history = session.history
        self.undo_button.Enable(history.can_undo())
        self.redo_button.Enable(history.can_redo())
        undo_reason = history.undo_reason()
        redo_reason = history.redo_reason()
        self.undo_button.SetToolTip(
            f"Отменить: {undo_reason} ({hotkeys['undo']})"
            if undo_reason is not None
            else "Нечего отменять"
        )
        self.redo_button.SetToolTip(
            f"Повторить: {redo_reason} ({hotkeys['redo']})"
            if redo_reason is not None
            else "Нечего повторять"
        )

    def update_error_label(self):
        errors = self.session.errors
        self.error_label.SetLabel(errors.summary())
        colour = wx.Colour(50, 205, 50) if errors.is_clean() else wx.Colour(255, 0, 0)
        self.error_label.SetForegroundColour(colour)
        self.control_panel.Layout()

    def on_session_changed(self, session):
        self.update_tool_buttons()
        self.update_error_label()
        self.canvas.Refresh()

    def on_undo(self, event):
        self.session.undo()

    def on_redo(self, event):
        self.session.redo()

    def on_key_down(self, event):
        """
        Обработчик нажатия клавиши на холсте.

        Args:
            event: Событие клавиши wxPython.
        """
        if event.AltDown() or event.MetaDown():
            event.Skip()
            return
        action = self.config.action_for_key(
            event.GetKeyCode(), event.ControlDown(), event.ShiftDown()
        )
        if action == "undo":
            self.on_undo(None)
        elif action in ("redo", "redo-alt"):
            self.on_redo(None)
        elif action in EditSession.TOOLS:
            self.set_tool(action)
        else:
            event.Skip()

    def on_copy_state(self, event):
        """
        Скопировать каноническое состояние графа в буфер обмена (JSON).

        Args:
            event: Событие меню/кнопки wxPython.
        """
        if wx.TheClipboard.Open():
            try:
                wx.TheClipboard.SetData(wx.TextDataObject(self.port.dumps()))
            finally:
                wx.TheClipboard.Close()

    def on_paste_state(self, event):
        """
        Заменить граф состоянием из буфера обмена.

        Некорректное состояние не меняет граф, ошибка показывается в окне.

        Args:
            event: Событие меню/кнопки wxPython.
        """
        data = wx.TextDataObject()
        if not wx.TheClipboard.Open():
            return
        try:
            ok = wx.TheClipboard.GetData(data)
        finally:
            wx.TheClipboard.Close()
        if not ok:
            return
        try:
            self.port.loads(data.GetText())
        except StateError as e:
            logger.warning("Rejected pasted state: %s", e)
            wx.MessageBox(f"Ошибка вставки:\n{e}", "Ошибка", wx.OK | wx.ICON_ERROR)

    def update_paper_bounds(self):
        """
        Пересчитать положение квадратного листа на холсте.
        """
        w, h = self.canvas.GetSize()
        margin = self.config.margin
        size = max(min(w, h) - 2 * margin, 1)
        left = (w - size) / 2
        top = (h - size) / 2
        self._paper_bounds = (left, top, left + size, top + size)

    def on_resize(self, event):
        wx.CallAfter(self.update_paper_bounds)
        wx.CallAfter(self.canvas.Refresh)
        event.Skip()

    def rel_to_abs(self, rel_point):
        """
        Преобразовать точку из координат листа (0-1) в координаты холста.

        Args:
            rel_point (tuple): Точка в координатах листа (x, y).

        Returns:
            tuple: Точка в пикселях (x, y).
        """
        left, top, right, bottom = self._paper_bounds
        size = right - left
        x_rel, y_rel = rel_point
        return (left + x_rel * size, top + y_rel * size)

    def abs_to_rel(self, abs_point):
        """
        Преобразовать точку из координат холста в координаты листа (0-1).

        Args:
            abs_point (tuple): Точка в пикселях (x, y).

        Returns:
            tuple: Точка в координатах листа (x, y).
        """
        left, top, right, bottom = self._paper_bounds
        size = right - left
        x_abs, y_abs = abs_point
        return ((x_abs - left) / size, (y_abs - top) / size)

    def scale(self, length):
        left, top, right, bottom = self._paper_bounds
        return length * (right - left)

    def vertex_at(self, pos):
        x, y = self.abs_to_rel(pos)
        radius = max(self.config.pick_radius, self.config.vertex_radius * 2)
        return self.session.graph.find_vertex_near(x, y, radius)

    def on_left_down(self, event):
        """
        Обработчик нажатия левой кнопки мыши.

        Поведение зависит от выбранного инструмента.

        Args:
            event: Событие мыши wxPython.
        """
        self.canvas.SetFocus()
        pos = event.GetPosition()
        x, y = self.abs_to_rel(pos)
        vid = self.vertex_at(pos)
        tool = self.session.tool

        if tool == EditSession.TOOL_ADD_VERTEX:
            if 0 <= x <= 1 and 0 <= y <= 1:
                self.session.add_vertex(x, y)
        elif tool == EditSession.TOOL_MOVE_VERTEX and vid is not None:
            self.session.begin_drag(vid, x, y)
        elif tool == EditSession.TOOL_ADD_EDGE and vid is not None:
            self.session.click_vertex(vid)

    def on_left_up(self, event):
        self.session.end_drag()

    def on_right_down(self, event):
        x, y = self.abs_to_rel(event.GetPosition())
        self.session.erase_at(x, y)

    def on_mouse_move(self, event):
        """
        Обработчик движения мыши.

        Двигает перетаскиваемую вершину, стирает при зажатой правой кнопке и
        обновляет предпросмотр ребра.

        Args:
            event: Событие мыши wxPython.
        """
        self.pointer = self.abs_to_rel(event.GetPosition())
        x, y = self.pointer
        if event.RightIsDown():
            self.session.erase_at(x, y)
        if self.session.drag is not None:
            self.session.drag_to(x, y)
        elif self.session.first_endpoint is not None:
            self.canvas.Refresh()

    @staticmethod
    def _i(x):
        """
        Преобразовать координату в целое число для отрисовки.

        Args:
            x (float): Координата для преобразования.

        Returns:
            int: Округленное целое число.
        """
        return int(round(x))

    def on_paint(self, event):
        """
        Обработчик события рисования (перерисовка холста).

        Args:
            event: Событие рисования wxPython.
        """
        dc = wx.PaintDC(self.canvas)
        self.draw_paper(dc)
        self.draw_low_degree_warnings(dc)
        self.draw_intersection_warnings(dc)
        self.draw_edges(dc)
        self.draw_preview_edge(dc)
        self.draw_vertices(dc)

    def draw_paper(self, dc):
        left, top, right, bottom = self._paper_bounds
        dc.SetPen(wx.Pen(wx.BLACK, max(1, self._i(self.scale(self.config.paper_border_width)))))
        dc.SetBrush(wx.WHITE_BRUSH)
        dc.DrawRectangle(
            self._i(left), self._i(top), self._i(right - left), self._i(bottom - top)
        )

    def draw_low_degree_warnings(self, dc):
        """
        Нарисовать красные треугольники под вершинами со степенью меньше 2.

        Args:
            dc: Контекст устройства wxPython.
        """
        size = self.scale(self.config.vertex_radius * 3.5)
        dc.SetPen(wx.TRANSPARENT_PEN)
        dc.SetBrush(wx.Brush(wx.Colour(255, 0, 0, 180)))
        graph = self.session.graph
        for vid in self.session.errors.low_degree_vertices:
            vertex = graph.vertex(vid)
            if vertex is None:
                continue
            cx, cy = self.rel_to_abs((vertex.x, vertex.y))
            points = [
                wx.Point(self._i(cx), self._i(cy - size)),
                wx.Point(self._i(cx - size * 0.866), self._i(cy + size * 0.5)),
                wx.Point(self._i(cx + size * 0.866), self._i(cy + size * 0.5)),
            ]
            dc.DrawPolygon(points)

    def draw_intersection_warnings(self, dc):
        """
        Нарисовать красный крестик в точке каждого пересечения рёбер.

        Args:
            dc: Контекст устройства wxPython.
        """
        half = self.scale(self.config.vertex_radius * 3) / 2
        dc.SetPen(wx.Pen(wx.RED, max(1, self._i(self.scale(self.config.edge_width)))))
        validator = IntersectionValidator(self.session.graph)
        for e1, e2 in self.session.errors.intersecting_edges:
            point = validator.intersection_point(e1, e2)
            if point is None:
                continue
            cx, cy = self.rel_to_abs((point.x, point.y))
            dc.DrawLine(
                self._i(cx - half), self._i(cy - half), self._i(cx + half), self._i(cy + half)
            )
            dc.DrawLine(
                self._i(cx - half), self._i(cy + half), self._i(cx + half), self._i(cy - half)
            )

    def draw_edges(self, dc):
        graph = self.session.graph
        dc.SetPen(wx.Pen(wx.BLACK, max(1, self._i(self.scale(self.config.edge_width)))))
        for eid in graph.edge_ids():
            a, b = graph.segment(eid)
            x1, y1 = self.rel_to_abs((a.x, a.y))
            x2, y2 = self.rel_to_abs((b.x, b.y))
            dc.DrawLine(self._i(x1), self._i(y1), self._i(x2), self._i(y2))

    def draw_preview_edge(self, dc):
        """
        Нарисовать предпросмотр ребра от выбранной вершины до курсора.

        Args:
            dc: Контекст устройства wxPython.
        """
        first = self.session.first_endpoint
        if self.session.tool != EditSession.TOOL_ADD_EDGE or first is None:
            return
        vertex = self.session.graph.vertex(first)
        if vertex is None:
            return
        x1, y1 = self.rel_to_abs((vertex.x, vertex.y))
        x2, y2 = self.rel_to_abs(self.pointer)
        dc.SetPen(wx.Pen(wx.Colour(100, 100, 100), 1, wx.PENSTYLE_SHORT_DASH))
        dc.DrawLine(self._i(x1), self._i(y1), self._i(x2), self._i(y2))

    def draw_vertices(self, dc):
        radius = max(2, self._i(self.scale(self.config.vertex_radius)))
        for vertex in self.session.graph.vertices:
            colour = wx.Colour(0, 0, 255) if vertex.selected else wx.BLACK
            dc.SetPen(wx.Pen(colour, 1))
            dc.SetBrush(wx.Brush(colour))
            x, y = self.rel_to_abs((vertex.x, vertex.y))
            dc.DrawCircle(self._i(x), self._i(y), radius)


def main():
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    app = wx.App()
    EditorFrame(None, "Fold N' Cut")
    app.MainLoop()


if __name__ == "__main__":
    main()
