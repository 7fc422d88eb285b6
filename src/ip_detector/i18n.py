"""
Internationalization (i18n) module for the IP detector.

Provides translations for notification text and command line output in
English (en) and German (de).
"""

from typing import Optional


SUPPORTED_LANGUAGES = frozenset({"en", "de"})
DEFAULT_LANGUAGE = "en"


# Structure: {message_key: {language_code: translated_message}}
TRANSLATIONS: dict[str, dict[str, str]] = {
    # Notification messages (Telegram Markdown)
    "notification.title_initialized": {
        "en": "🌐 *IP Detector Initialized*",
        "de": "🌐 *IP Detector gestartet*",
    },
    "notification.title_changed": {
        "en": "🔄 *IP Address Changed*",
        "de": "🔄 *IP-Adresse geändert*",
    },
    "notification.title_test": {
        "en": "✅ *IP Detector Test*",
        "de": "✅ *IP Detector Test*",
    },
    "notification.host_line": {
        "en": "🖥️ Host: `{hostname}`",
        "de": "🖥️ Host: `{hostname}`",
    },
    "notification.address_new": {
        "en": "📍 {family}: `{current}` (new)",
        "de": "📍 {family}: `{current}` (neu)",
    },
    "notification.address_changed": {
        "en": "📍 {family}: `{current}` ← `{previous}`",
        "de": "📍 {family}: `{current}` ← `{previous}`",
    },
    "notification.address_unchanged": {
        "en": "📍 {family}: `{current}`",
        "de": "📍 {family}: `{current}`",
    },
    "notification.address_unavailable": {
        "en": "📍 {family}: Not available",
        "de": "📍 {family}: Nicht verfügbar",
    },
    "notification.time_line": {
        "en": "🕐 Time: {time}",
        "de": "🕐 Zeit: {time}",
    },
    "notification.test_body": {
        "en": "Telegram notification is working correctly!",
        "de": "Telegram-Benachrichtigung funktioniert!",
    },

    # CLI messages
    "cli.detecting": {
        "en": "Detecting IP addresses...",
        "de": "Ermittle IP-Adressen...",
    },
    "cli.hostname": {
        "en": "Hostname: {hostname}",
        "de": "Hostname: {hostname}",
    },
    "cli.address_via": {
        "en": "{family}: {address} (via {service})",
        "de": "{family}: {address} (über {service})",
    },
    "cli.ipv4_failed": {
        "en": "IPv4: Not detected ({error})",
        "de": "IPv4: Nicht ermittelt ({error})",
    },
    "cli.ipv6_unavailable": {
        "en": "IPv6: Not available",
        "de": "IPv6: Nicht verfügbar",
    },
    "cli.ipv6_unavailable_was": {
        "en": "IPv6: Not available (was: {previous})",
        "de": "IPv6: Nicht verfügbar (war: {previous})",
    },
    "cli.no_changes": {
        "en": "No IP changes detected.",
        "de": "Keine IP-Änderungen erkannt.",
    },
    "cli.initial_recorded": {
        "en": "Initial {family} recorded: {current}",
        "de": "Erste {family} gespeichert: {current}",
    },
    "cli.changed": {
        "en": "{family} changed from {previous} to {current}",
        "de": "{family} geändert von {previous} auf {current}",
    },
    "cli.notification_sent": {
        "en": "✅ Notification sent.",
        "de": "✅ Benachrichtigung gesendet.",
    },
    "cli.stage_failed": {
        "en": "⚠️  {stage} failed: {error}",
        "de": "⚠️  {stage} fehlgeschlagen: {error}",
    },
    "cli.not_configured": {
        "en": "No configuration found at {path}. Run 'ip-detector setup' first.",
        "de": "Keine Konfiguration unter {path}. Bitte zuerst 'ip-detector setup' ausführen.",
    },
    "cli.setup_saved": {
        "en": "✅ Configuration saved successfully!",
        "de": "✅ Konfiguration gespeichert!",
    },
    "cli.test_sent": {
        "en": "✅ Test notification sent successfully!",
        "de": "✅ Testbenachrichtigung gesendet!",
    },
    "cli.daemon_start": {
        "en": "Starting IP detector daemon (checking every {interval} seconds)...",
        "de": "Starte IP-Detector-Dienst (Prüfung alle {interval} Sekunden)...",
    },
    "cli.daemon_stop_hint": {
        "en": "Press Ctrl+C to stop.",
        "de": "Mit Strg+C beenden.",
    },
    "cli.daemon_stopped": {
        "en": "Received shutdown signal. Exiting gracefully...",
        "de": "Beenden-Signal empfangen. Wird beendet...",
    },
    "cli.history_empty": {
        "en": "No IP changes recorded yet.",
        "de": "Noch keine IP-Änderungen aufgezeichnet.",
    },

    # Self-test messages
    "selftest.header": {
        "en": "IP Detector Self-Test",
        "de": "IP Detector Selbsttest",
    },
    "selftest.config_validation": {
        "en": "Configuration validation:",
        "de": "Konfigurationsprüfung:",
    },
    "selftest.config_valid": {
        "en": "Configuration is valid",
        "de": "Konfiguration ist gültig",
    },
    "selftest.config_invalid": {
        "en": "Configuration is invalid",
        "de": "Konfiguration ist ungültig",
    },
    "selftest.warnings": {
        "en": "Warnings:",
        "de": "Warnungen:",
    },
    "selftest.connectivity": {
        "en": "Lookup service connectivity:",
        "de": "Erreichbarkeit der Abfragedienste:",
    },
    "selftest.success": {
        "en": "Self-test passed",
        "de": "Selbsttest bestanden",
    },
    "selftest.failed": {
        "en": "Self-test failed",
        "de": "Selbsttest fehlgeschlagen",
    },
    "selftest.duration": {
        "en": "Duration",
        "de": "Dauer",
    },
}


def get_message(
    key: str,
    language: Optional[str] = None,
    **kwargs,
) -> str:
    """
    Get a translated message by key.

    Args:
        key: The message key (e.g., 'notification.title_changed')
        language: Language code ('en' or 'de'); unsupported values fall back
            to English
        **kwargs: Format arguments for the message

    Returns:
        The translated and formatted message; the key itself if unknown
    """
    if language is None or language not in SUPPORTED_LANGUAGES:
        language = DEFAULT_LANGUAGE

    translations = TRANSLATIONS.get(key)
    if translations is None:
        return key

    message = translations.get(language) or translations.get(DEFAULT_LANGUAGE, key)

    if kwargs:
        try:
            message = message.format(**kwargs)
        except (KeyError, IndexError):
            pass

    return message


def get_missing_translations() -> dict[str, list[str]]:
    """
    Find message keys lacking a translation.

    Returns:
        Mapping of language code to the keys missing for it
    """
    missing: dict[str, list[str]] = {lang: [] for lang in SUPPORTED_LANGUAGES}
    for key, translations in TRANSLATIONS.items():
        for lang in SUPPORTED_LANGUAGES:
            if not translations.get(lang):
                missing[lang].append(key)
    return {lang: keys for lang, keys in missing.items() if keys}
