from app.taskmanager.locales.en import translation as en

LOCALES: dict[str, dict] = {
    "en": en,
}
