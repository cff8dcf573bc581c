"""
Tests for promoreel.services.content_extractor and code_generator
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from PIL import Image

from promoreel.models.pipeline import ProductData
from promoreel.models.script import Scene, VideoScript
from promoreel.services.beat_sync import create_beat_map
from promoreel.services.code_generator import CodeGenerationError, CodeGenerator
from promoreel.services.content_extractor import (
    ContentExtractionError,
    ContentExtractor,
    PageSnapshot,
    extract_palette,
    placeholder_product,
)


def snapshot(**kwargs):
    defaults = dict(
        url="https://acme.io",
        title="Acme | Invoicing for teams",
        description="Send invoices in seconds",
        headings=["Invoicing for teams", "Recurring billing", "Reminders"],
        images=[f"https://acme.io/{i}.png" for i in range(8)],
        logos=["https://acme.io/logo.svg"],
        text="Acme helps small teams get paid.",
    )
    defaults.update(kwargs)
    return PageSnapshot(**defaults)


def test_placeholder_product():
    product = placeholder_product("  " + "x" * 150 + "  ")
    assert product.name == "Your Product"
    assert len(product.tagline) == 100
    assert len(product.features) == 3
    assert product.colors.primary == "#3B82F6"


class TestExtract:

    @pytest.mark.asyncio
    async def test_heuristic_profile_without_model(self, tmp_path):
        extractor = ContentExtractor(screenshots_dir=str(tmp_path))
        with patch.object(extractor, "capture_page", AsyncMock(return_value=snapshot())):
            product = await extractor.extract("https://acme.io")

        assert product.name == "Acme"
        assert product.tagline == "Send invoices in seconds"
        assert [f.title for f in product.features] == ["Recurring billing", "Reminders"]
        assert len(product.images) == 5
        assert product.logos == ["https://acme.io/logo.svg"]
        assert product.source_url == "https://acme.io"

    @pytest.mark.asyncio
    async def test_empty_page_fails(self, tmp_path):
        extractor = ContentExtractor(screenshots_dir=str(tmp_path))
        with patch.object(extractor, "capture_page", AsyncMock(return_value=snapshot(title="", headings=[]))):
            with pytest.raises(ContentExtractionError):
                await extractor.extract("https://acme.io")

    @pytest.mark.asyncio
    async def test_model_profile(self, tmp_path):
        llm = MagicMock()
        llm.generate_json = AsyncMock(return_value={"name": "Acme Pay", "tone": "bold", "features": []})
        extractor = ContentExtractor(llm, screenshots_dir=str(tmp_path))
        with patch.object(extractor, "capture_page", AsyncMock(return_value=snapshot())):
            product = await extractor.extract("https://acme.io")

        assert product.name == "Acme Pay"
        assert product.tone.value == "bold"
        prompt = llm.generate_json.call_args.args[0]
        assert "Recurring billing" in prompt

    @pytest.mark.asyncio
    async def test_model_profile_missing_name(self, tmp_path):
        llm = MagicMock()
        llm.generate_json = AsyncMock(return_value={"tagline": "no name"})
        extractor = ContentExtractor(llm, screenshots_dir=str(tmp_path))
        with patch.object(extractor, "capture_page", AsyncMock(return_value=snapshot())):
            with pytest.raises(ContentExtractionError):
                await extractor.extract("https://acme.io")

    @pytest.mark.asyncio
    async def test_screenshot_palette_sets_brand_colors(self, tmp_path):
        shot = tmp_path / "hero.png"
        img = Image.new("RGB", (90, 30), (255, 255, 255))
        for x0, color in [(0, (200, 40, 40)), (30, (40, 160, 60)), (60, (40, 60, 200))]:
            for x in range(x0, x0 + 30):
                for y in range(20):
                    img.putpixel((x, y), color)
        img.save(shot)

        extractor = ContentExtractor(screenshots_dir=str(tmp_path))
        with patch.object(extractor, "capture_page", AsyncMock(return_value=snapshot(screenshot_path=str(shot)))):
            product = await extractor.extract("https://acme.io")

        assert product.screenshots == [str(shot)]
        assert product.colors.primary != "#3B82F6"


def test_palette_skips_white_and_black(tmp_path):
    path = tmp_path / "plain.png"
    Image.new("RGB", (40, 40), (255, 255, 255)).save(path)
    assert extract_palette(str(path)) == []


class TestCodeGenerator:

    def script(self):
        return VideoScript(total_duration=300, scenes=[Scene(id="a", end_frame=300)])

    @pytest.mark.asyncio
    async def test_template_module(self):
        beat_map = create_beat_map(120, 10, 30)
        code = await CodeGenerator().generate(self.script(), beat_map=beat_map)

        assert "export const PromoVideo" in code
        assert "export const durationInFrames = 300;" in code
        assert '"framesPerBeat": 15' in code
        assert '"energy"' not in code

    @pytest.mark.asyncio
    async def test_empty_script_rejected(self):
        with pytest.raises(CodeGenerationError):
            await CodeGenerator().generate(VideoScript())

    @pytest.mark.asyncio
    async def test_model_code_is_unfenced_and_checked(self):
        llm = MagicMock()
        llm.generate_text = AsyncMock(return_value="```tsx\nexport const PromoVideo = () => null;\n```")
        code = await CodeGenerator(llm).generate(self.script(), product=ProductData(name="Acme"))
        assert code == "export const PromoVideo = () => null;"

        llm.generate_text = AsyncMock(return_value="const Nothing = 1;")
        with pytest.raises(CodeGenerationError):
            await CodeGenerator(llm).fix("export const A = 1;", "Unexpected token")

    @pytest.mark.asyncio
    async def test_fix_requires_model(self):
        with pytest.raises(CodeGenerationError):
            await CodeGenerator().fix("export const A = 1;", "boom")
