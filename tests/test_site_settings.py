from job_board.cache import TTLCache
from job_board.models import AccessLevel
from job_board.site_settings import LINKEDIN_POSTS_KEY, SiteSettingsService, linkedin_urls_from_value
from job_board.store import InMemoryRecordStore, StoreError


EDITOR = AccessLevel(mode="store", email="Admin@DAWS.test", can_manage=True)


class Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_value_shapes():
    urls = ["urn:li:activity:1", "https://example.com/x"]
    assert linkedin_urls_from_value(urls) == ["urn:li:activity:1"]
    assert linkedin_urls_from_value({"postUrls": urls}) == ["urn:li:activity:1"]
    assert linkedin_urls_from_value({"urls": urls}) == ["urn:li:activity:1"]
    assert linkedin_urls_from_value("urn:li:activity:1") == []


def test_fetch_reads_row_and_caches(store, config):
    store.insert(config.SITE_SETTINGS_TABLE, {"key": LINKEDIN_POSTS_KEY, "value": {"postUrls": ["urn:li:activity:9"]}})
    cache = TTLCache(60)
    result = SiteSettingsService(store, cache, config).fetch_linkedin_post_urls()
    assert result.data == ["urn:li:activity:9"]
    assert cache.get(LINKEDIN_POSTS_KEY) == ["urn:li:activity:9"]


def test_fetch_falls_back_to_cache_then_environment(config):
    class DownStore(InMemoryRecordStore):
        def select(self, *args, **kwargs):
            raise StoreError("network down")

    config.LINKEDIN_POST_URLS = "urn:li:activity:7\nhttps://www.linkedin.com/posts/x_activity-8"
    clock = Clock()
    cache = TTLCache(60, clock=clock)
    service = SiteSettingsService(DownStore(), cache, config)

    cache.set(LINKEDIN_POSTS_KEY, ["urn:li:activity:1"])
    cached = service.fetch_linkedin_post_urls()
    assert cached.ok
    assert cached.data == ["urn:li:activity:1"]
    assert cached.message == "network down"

    clock.now += 61
    assert service.fetch_linkedin_post_urls().data == [
        "urn:li:activity:7",
        "https://www.linkedin.com/posts/x_activity-8",
    ]


def test_save_requires_editor_email(store, config):
    result = SiteSettingsService(store, TTLCache(60), config).save_linkedin_post_urls("urn:li:activity:1", None)
    assert not result.ok
    assert result.message == "Sign in with an admin account to save website settings."
    assert store.rows(config.SITE_SETTINGS_TABLE) == []


def test_save_upserts_single_row(store, config):
    cache = TTLCache(60)
    service = SiteSettingsService(store, cache, config)
    service.save_linkedin_post_urls("urn:li:activity:1, https://example.com/x", EDITOR)
    result = service.save_linkedin_post_urls(["urn:li:activity:2"], EDITOR)

    assert result.ok
    [row] = store.rows(config.SITE_SETTINGS_TABLE)
    assert row["value"] == {"postUrls": ["urn:li:activity:2"]}
    assert row["updated_by_email"] == "admin@daws.test"
    assert cache.get(LINKEDIN_POSTS_KEY) == ["urn:li:activity:2"]


def test_save_reports_missing_table(config):
    class NoTableStore(InMemoryRecordStore):
        def upsert(self, table, records, on_conflict):
            raise StoreError('relation "public.site_settings" does not exist', code="42P01")

    result = SiteSettingsService(NoTableStore(), TTLCache(60), config).save_linkedin_post_urls("urn:li:activity:1", EDITOR)
    assert not result.ok
    assert result.message == (
        'relation "public.site_settings" does not exist The site_settings table is missing; '
        "run the latest Supabase SQL migration."
    )


def test_local_mode_saves_to_cache(config):
    cache = TTLCache(60)
    service = SiteSettingsService(None, cache, config)
    assert service.save_linkedin_post_urls("urn:li:activity:3", None).ok
    assert service.fetch_linkedin_post_urls().data == ["urn:li:activity:3"]
