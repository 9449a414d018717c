"""
Formats Lox runtime values the way `print` shows them.
"""
import math

from lox.lox_datatypes import NativeFunction, LoxFunction, LoxClass, LoxInstance


class Printer:
    """Formats Lox values into the strings a Lox program prints."""

    def __init__(self):
        self._handlers = self._create_handlers()

    def pformat(self, obj) -> str:
        """Public entry point to format a value."""
        handler = self._get_handler(obj)
        return handler(obj)

    def _get_handler(self, obj):
        """Dispatcher to find the correct formatting method."""
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        # Subclasses of the known runtime types
        for known, handler in self._handlers.items():
            if isinstance(obj, known) and known is not bool:
                return handler
        return lambda o: repr(o)

    def _create_handlers(self):
        return {
            type(None): self._pformat_nil,
            bool: self._pformat_bool,
            float: self._pformat_number,
            int: self._pformat_number,
            str: self._pformat_str,
            NativeFunction: self._pformat_native,
            LoxFunction: self._pformat_function,
            LoxClass: self._pformat_class,
            LoxInstance: self._pformat_instance,
        }

    def _pformat_nil(self, obj):
        return 'nil'

    def _pformat_bool(self, obj):
        return 'true' if obj else 'false'

    def _pformat_number(self, obj):
        if math.isnan(obj):
            return 'NaN'
        if math.isinf(obj):
            return 'Infinity' if obj > 0 else '-Infinity'
        if obj == int(obj) and abs(obj) < 1e21:
            # Whole numbers print every digit, and -0 prints as 0
            return '%d' % obj
        text = repr(float(obj))
        if text.endswith('.0'):
            text = text[:-2]
        return text

    def _pformat_str(self, obj):
        return obj

    def _pformat_native(self, obj):
        return '<native fn>'

    def _pformat_function(self, obj):
        return f'<fn {obj.name}>'

    def _pformat_class(self, obj):
        return obj.name

    def _pformat_instance(self, obj):
        return f'{obj.klass.name} instance'


_printer = Printer()


def stringify(value) -> str:
    """Shortcut for Printer().pformat(value) using a shared Printer."""
    return _printer.pformat(value)
