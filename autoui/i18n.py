"""
Translation catalogs and lookup for auto-UI labels and messages.
Keys are dotted paths ('form.validation.required'); values may contain
{{param}} placeholders.
"""

import re
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = 'en'

_PARAM_PATTERN = re.compile(r"\{\{(\w+)\}\}")

TRANSLATIONS: Dict[str, Dict[str, Any]] = {
    'en': {
        'form': {
            'submit': "Submit",
            'submitting': "Submitting...",
            'reset': "Reset",
            'required': "Required",
            'next': "Next",
            'previous': "Previous",
            'step': "Step {{current}} of {{total}}",
            'validation': {
                'required': "This field is required",
                'min': "Value must be at least {{min}}",
                'max': "Value must be at most {{max}}",
                'minExclusive': "Value must be greater than {{min}}",
                'maxExclusive': "Value must be less than {{max}}",
                'minLength': "Must be at least {{min}} characters",
                'maxLength': "Must be at most {{max}} characters",
                'pattern': "Invalid format",
                'email': "Invalid email address",
                'url': "Invalid URL",
                'invalid': "Invalid value",
                'oneOf': "Value must be one of: {{options}}",
                'multipleOf': "Value must be a multiple of {{multiple}}",
            }
        },
        'table': {
            'noData': "No data available",
            'loading': "Loading data...",
            'error': "Failed to load data: {{message}}",
            'selectAll': "Select all",
            'selected': "{{count}} selected",
            'pagination': {
                'showing': "Showing {{start}} to {{end}} of {{total}} entries",
                'next': "Next",
                'previous': "Previous",
                'rowsPerPage': "Rows per page:",
                'page': "Page {{page}} of {{pages}}",
            },
            'filters': {
                'title': "Filters",
                'apply': "Apply",
                'clear': "Clear",
                'add': "Add Filter",
                'value': "Value",
                'operators': {
                    'eq': "Equals",
                    'neq': "Not equals",
                    'gt': "Greater than",
                    'gte': "Greater than or equal",
                    'lt': "Less than",
                    'lte': "Less than or equal",
                    'contains': "Contains",
                    'startsWith': "Starts with",
                    'endsWith': "Ends with",
                }
            },
            'actions': {
                'edit': "Edit",
                'delete': "Delete",
                'view': "View",
                'bulkDelete': "Delete Selected",
                'confirm': "Run '{{action}}'? This cannot be undone.",
                'confirmYes': "Confirm",
                'cancel': "Cancel",
            }
        },
        'detail': {
            'emptyValue': "Not provided",
        },
        'export': {
            'title': "Export",
            'download': "Download {{format}}",
            'delimiter': "Delimiter",
            'includeHeaders': "Include headers",
        },
        'import': {
            'title': "Import",
            'success': "{{count}} rows imported",
            'failed': "{{count}} rows failed",
            'errors': "Import errors",
        },
        'fields': {
            'boolean': {'true': "Yes", 'false': "No"},
            'file': {'download': "Download file"},
            'relation': {'loadError': "Failed to load options: {{message}}"},
            'generic': {
                'select': "Select...",
                'search': "Search...",
                'upload': "Upload",
                'remove': "Remove",
            }
        }
    },
    'tr': {
        'form': {
            'submit': "Gönder",
            'reset': "Sıfırla",
            'required': "Zorunlu",
            'validation': {
                'required': "Bu alan zorunludur",
                'min': "Değer en az {{min}} olmalıdır",
                'max': "Değer en fazla {{max}} olmalıdır",
                'minLength': "En az {{min}} karakter olmalıdır",
                'maxLength': "En fazla {{max}} karakter olmalıdır",
                'pattern': "Geçersiz format",
                'email': "Geçersiz e-posta adresi",
                'url': "Geçersiz URL",
            }
        },
        'table': {
            'noData': "Veri bulunamadı",
            'loading': "Veriler yükleniyor...",
            'pagination': {
                'showing': "Toplam {{total}} kayıttan {{start}} - {{end}} arası gösteriliyor",
                'next': "Sonraki",
                'previous': "Önceki",
                'rowsPerPage': "Sayfa başına satır:",
            },
            'filters': {
                'title': "Filtreler",
                'apply': "Uygula",
                'clear': "Temizle",
                'add': "Filtre Ekle",
            },
            'actions': {
                'edit': "Düzenle",
                'delete': "Sil",
                'view': "Görüntüle",
                'bulkDelete': "Seçilenleri Sil",
            }
        },
        'fields': {
            'boolean': {'true': "Evet", 'false': "Hayır"},
            'generic': {
                'select': "Seçiniz...",
                'search': "Ara...",
                'upload': "Yükle",
                'remove': "Kaldır",
            }
        }
    },
    'es': {
        'form': {
            'submit': "Enviar",
            'reset': "Restablecer",
            'required': "Obligatorio",
            'validation': {
                'required': "Este campo es obligatorio",
                'min': "El valor debe ser al menos {{min}}",
                'max': "El valor debe ser como máximo {{max}}",
                'minLength': "Debe tener al menos {{min}} caracteres",
                'maxLength': "Debe tener como máximo {{max}} caracteres",
                'pattern': "Formato no válido",
                'email': "Correo electrónico no válido",
                'url': "URL no válida",
            }
        },
        'table': {
            'noData': "No hay datos disponibles",
            'loading': "Cargando datos...",
            'pagination': {
                'showing': "Mostrando {{start}} a {{end}} de {{total}} entradas",
                'next': "Siguiente",
                'previous': "Anterior",
                'rowsPerPage': "Filas por página:",
            },
            'filters': {
                'title': "Filtros",
                'apply': "Aplicar",
                'clear': "Limpiar",
                'add': "Añadir filtro",
            },
            'actions': {
                'edit': "Editar",
                'delete': "Eliminar",
                'view': "Ver",
                'bulkDelete': "Eliminar seleccionados",
            }
        },
        'fields': {
            'boolean': {'true': "Sí", 'false': "No"},
        }
    },
    'de': {
        'form': {
            'submit': "Absenden",
            'reset': "Zurücksetzen",
            'required': "Erforderlich",
            'validation': {
                'required': "Dieses Feld ist erforderlich",
                'min': "Der Wert muss mindestens {{min}} sein",
                'max': "Der Wert darf höchstens {{max}} sein",
                'minLength': "Muss mindestens {{min}} Zeichen lang sein",
                'maxLength': "Darf höchstens {{max}} Zeichen lang sein",
                'pattern': "Ungültiges Format",
                'email': "Ungültige E-Mail-Adresse",
                'url': "Ungültige URL",
            }
        },
        'table': {
            'noData': "Keine Daten verfügbar",
            'loading': "Daten werden geladen...",
            'pagination': {
                'showing': "Zeige {{start}} bis {{end}} von {{total}} Einträgen",
                'next': "Weiter",
                'previous': "Zurück",
                'rowsPerPage': "Zeilen pro Seite:",
            },
            'filters': {
                'title': "Filter",
                'apply': "Anwenden",
                'clear': "Zurücksetzen",
                'add': "Filter hinzufügen",
            },
            'actions': {
                'edit': "Bearbeiten",
                'delete': "Löschen",
                'view': "Anzeigen",
                'bulkDelete': "Ausgewählte löschen",
            }
        },
        'fields': {
            'boolean': {'true': "Ja", 'false': "Nein"},
        }
    },
}


def _lookup(catalog: Dict[str, Any], key: str) -> Optional[str]:
    node: Any = catalog
    for part in key.split('.'):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node if isinstance(node, str) else None


def interpolate(template: str, params: Dict[str, Any]) -> str:
    """Replace {{name}} placeholders; unknown placeholders are left as-is."""
    if not params:
        return template

    def _replace(match):
        name = match.group(1)
        if name in params and params[name] is not None:
            return str(params[name])
        return match.group(0)

    return _PARAM_PATTERN.sub(_replace, template)


class Translator:
    """Looks up dotted keys in a locale catalog with English and literal fallbacks."""

    def __init__(self, locale: str = DEFAULT_LOCALE,
                 overrides: Optional[Dict[str, Dict[str, Any]]] = None):
        if locale not in TRANSLATIONS:
            logger.debug(f"No catalog for locale '{locale}', using '{DEFAULT_LOCALE}'")
        self.locale = locale
        self.overrides = overrides or {}

    def t(self, key: str, default: Optional[str] = None, **params: Any) -> str:
        """
        Translate a key.

        Resolution order: caller overrides for the locale, the locale catalog,
        the English catalog, `default`, and finally the key itself.

        Args:
            key: Dotted translation key
            default: Literal fallback when no catalog has the key
            **params: Values for {{param}} placeholders

        Returns:
            Translated, interpolated string
        """
        for catalog in (
            self.overrides.get(self.locale, {}),
            TRANSLATIONS.get(self.locale, {}),
            TRANSLATIONS[DEFAULT_LOCALE],
        ):
            value = _lookup(catalog, key)
            if value is not None:
                return interpolate(value, params)

        if default is not None:
            return interpolate(default, params)
        return key

    __call__ = t


def available_locales():
    return sorted(TRANSLATIONS.keys())


def get_translator(locale: Optional[str] = None) -> Translator:
    """Return a translator for `locale`, or for the configured ui.locale."""
    if locale is None:
        from .config_loader import get_config_value
        locale = get_config_value('ui', 'locale', DEFAULT_LOCALE)
    return Translator(locale)
