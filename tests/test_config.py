import pytest

from figma_specs.config import Config, ExportConfig


def test_config_defaults(monkeypatch):
    for name in ('FIGMA_API_TOKEN', 'IMAGE_FORMAT', 'IMAGE_SCALES', 'IMAGE_DIR', 'OUTPUT_FILE',
                 'LOG_LEVEL', 'MAX_RETRIES', 'REQUEST_TIMEOUT'):
        monkeypatch.delenv(name, raising=False)

    config = Config()

    assert config.figma_token is None
    assert config.image_format == 'png'
    assert config.image_scales == '1'
    assert config.image_dir == 'figma-assets'
    assert config.output_file == 'FIGMA_DESIGN_SPECIFICATIONS.md'
    assert config.log_level == 'INFO'
    assert config.max_retries == 3
    assert config.request_timeout == 600
    assert config.validate() is False


def test_config_reads_environment(monkeypatch):
    monkeypatch.setenv('FIGMA_API_TOKEN', 'figd_token')
    monkeypatch.setenv('MAX_RETRIES', '5')
    monkeypatch.setenv('IMAGE_FORMAT', 'svg')

    config = Config()

    assert config.figma_token == 'figd_token'
    assert config.max_retries == 5
    assert config.image_format == 'svg'
    assert config.validate() is True


def test_config_rejects_zero_retries(monkeypatch):
    monkeypatch.setenv('FIGMA_API_TOKEN', 'figd_token')
    monkeypatch.setenv('MAX_RETRIES', '0')

    assert Config().validate() is False


@pytest.mark.parametrize("fmt", ['png', 'svg', 'jpg', 'pdf'])
def test_export_config_accepts_supported_formats(fmt):
    ExportConfig(format=fmt).validate()


@pytest.mark.parametrize("config, message", [
    (ExportConfig(format='gif'), "invalid image format 'gif'"),
    (ExportConfig(format='PNG'), "invalid image format"),
    (ExportConfig(scales=[1, 0]), "scale value must be positive, got 0"),
    (ExportConfig(scales=[-2]), "scale value must be positive, got -2"),
    (ExportConfig(scales=[float('nan')]), "scale value must be finite"),
    (ExportConfig(scales=[1, float('inf')]), "scale value must be finite"),
])
def test_export_config_rejects_bad_values(config, message):
    with pytest.raises(ValueError, match=message):
        config.validate()


def test_effective_scales():
    assert ExportConfig(format='png', scales=[1, 2, 3]).effective_scales() == [1, 2, 3]
    assert ExportConfig(format='svg', scales=[1, 2, 3]).effective_scales() == [1.0]
    assert ExportConfig(format='pdf', scales=[2]).effective_scales() == [1.0]
    assert ExportConfig(format='jpg', scales=[]).effective_scales() == [1.0]
