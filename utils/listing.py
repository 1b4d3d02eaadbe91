# utils/listing.py
import math


def field_equals(field, value):
    return lambda item: item.get(field) == value


def text_search(term, fields):
    """Case-insensitive substring match across ``fields``."""
    needle = (term or '').strip().lower()

    def predicate(item):
        for field in fields:
            value = item.get(field)
            if value is not None and needle in str(value).lower():
                return True
        return False

    return predicate


class ListView:
    """Filter and paginate an in-memory list for table display."""

    def __init__(self, items, page_size=10):
        self.items = list(items)
        self.page_size = page_size
        self.filters = {}
        self.page = 1
        self._refresh()

    def _refresh(self):
        self.filtered = [
            item for item in self.items
            if all(predicate(item) for predicate in self.filters.values())
        ]
        self.page = 1

    def set_filter(self, name, predicate):
        self.filters[name] = predicate
        self._refresh()

    def clear_filter(self, name):
        self.filters.pop(name, None)
        self._refresh()

    def filter_by(self, name, field, value):
        """Equality filter; an empty value removes the filter."""
        if value in (None, ''):
            self.clear_filter(name)
        else:
            self.set_filter(name, field_equals(field, value))

    def search(self, term, fields):
        if not term or not term.strip():
            self.clear_filter('search')
        else:
            self.set_filter('search', text_search(term, fields))

    @property
    def total_pages(self):
        return math.ceil(len(self.filtered) / self.page_size)

    @property
    def page_items(self):
        start = (self.page - 1) * self.page_size
        return self.filtered[start:start + self.page_size]

    @property
    def has_next(self):
        return self.page < self.total_pages

    @property
    def has_previous(self):
        return self.page > 1

    def next_page(self):
        if self.has_next:
            self.page += 1

    def previous_page(self):
        if self.has_previous:
            self.page -= 1

    def go_to(self, page):
        try:
            page = int(page)
        except (TypeError, ValueError):
            page = 1
        self.page = min(max(page, 1), max(self.total_pages, 1))


def list_view_from_args(items, args, search_fields=(), equality=None, page_size=10):
    """
    Build a ListView from request query args (``q``, ``page`` and the
    equality filters named in ``equality``, a mapping of arg name to field).
    """
    view = ListView(items, page_size=page_size)
    if search_fields:
        view.search(args.get('q', ''), list(search_fields))
    for arg, field in (equality or {}).items():
        view.filter_by(arg, field, args.get(arg, ''))
    view.go_to(args.get('page', 1))
    return view
