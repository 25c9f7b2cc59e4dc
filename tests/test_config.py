"""Tests for settings validation."""

import pytest
from pydantic import ValidationError

from streamhub.config import CustomSettings


class TestCustomSettings:
    def test_proxy_prefixes_are_split(self):
        config = CustomSettings(proxy_prefixes="https://a.test/?, https://b.test/?url=,")
        assert config.proxy_prefix_list == ["https://a.test/?", "https://b.test/?url="]

    def test_log_level_is_normalized(self):
        assert CustomSettings(log_level="debug").log_level == "DEBUG"

    def test_empty_source_url_disables_source(self):
        assert CustomSettings(sharkstreams_url="").sharkstreams_url == ""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"proxy_prefixes": "ftp://proxy.test/"},
            {"pptv_url": "pptv.test/api"},
            {"refresh_interval_sec": 0},
            {"language_check_concurrency": -1},
            {"http_timeout_sec": 0},
            {"viewer_timezone": "Mars/Olympus_Mons"},
            {"log_level": "LOUD"},
        ],
    )
    def test_invalid_values_are_rejected(self, overrides):
        with pytest.raises(ValidationError):
            CustomSettings(**overrides)
