"""
Extração de conteúdo do produto a partir de uma URL.

Carrega a página com Playwright (Chromium headless), coleta texto, imagens,
logos e um screenshot, e pede ao Gemini um perfil de produto estruturado.
"""

import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ..models.config import ScraperConfig
from ..models.pipeline import BrandColors, ProductData, ProductFeature, Tone
from .errors import PipelineError
from .llm_client import GeminiClient, LLMResponseError

logger = logging.getLogger(__name__)


class ContentExtractionError(PipelineError):
    """Falha de navegação, timeout ou resposta inutilizável na extração."""
    pass


EXTRACTION_SYSTEM_PROMPT = """You are a product analyst specializing in extracting marketing information from websites.
Given a URL and its rendered page text, extract the product name and tagline, up to 5 key features,
pricing if available, testimonials if available, brand colors as hex values, and the tone
(professional, playful, minimal or bold).

Output ONLY valid JSON:
{
  "name": "string",
  "tagline": "string",
  "description": "string",
  "features": [{"title": "string", "description": "string", "icon": "optional emoji"}],
  "pricing": [{"tier": "string", "price": "string", "features": ["string"]}] | null,
  "testimonials": [{"quote": "string", "author": "string", "role": "string"}] | null,
  "images": ["url strings"],
  "colors": {"primary": "#hex", "secondary": "#hex", "accent": "#hex"},
  "tone": "professional" | "playful" | "minimal" | "bold"
}
If you cannot determine certain values, make reasonable inferences based on the content."""


PAGE_CONTENT_SCRIPT = """() => {
    const text = (el) => (el && el.textContent ? el.textContent.trim() : '');
    const headings = Array.from(document.querySelectorAll('h1, h2, h3'))
        .map(text).filter(t => t.length > 0 && t.length < 200).slice(0, 30);
    const images = Array.from(document.images)
        .filter(img => img.naturalWidth >= 200 && img.naturalHeight >= 150)
        .map(img => img.currentSrc || img.src)
        .filter(src => src && !src.startsWith('data:'));
    const logos = Array.from(document.querySelectorAll(
        'img[alt*="logo" i], img[src*="logo" i], header img, [class*="logo" i] img'
    )).map(img => img.currentSrc || img.src).filter(Boolean);
    const meta = document.querySelector('meta[name="description"], meta[property="og:description"]');
    return {
        title: document.title || '',
        description: meta ? meta.getAttribute('content') || '' : '',
        headings: headings,
        images: Array.from(new Set(images)),
        logos: Array.from(new Set(logos)),
        bodyText: document.body ? document.body.innerText : ''
    };
}"""


@dataclass
class PageSnapshot:
    """Conteúdo renderizado de uma página."""
    url: str
    title: str = ""
    description: str = ""
    headings: List[str] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    logos: List[str] = field(default_factory=list)
    text: str = ""
    screenshot_path: Optional[str] = None


def placeholder_product(description: str) -> ProductData:
    """Perfil mínimo quando só há descrição (sem URL para extrair)."""
    description = description.strip()
    return ProductData(
        name="Your Product",
        tagline=description[:100],
        description=description,
        features=[
            ProductFeature(title="Feature 1", description="Key benefit of your product"),
            ProductFeature(title="Feature 2", description="Another important feature"),
            ProductFeature(title="Feature 3", description="What makes you unique"),
        ],
        images=[],
        colors=BrandColors(),
        tone=Tone.PROFESSIONAL,
    )


def extract_palette(image_path: str, max_colors: int = 8) -> List[str]:
    """
    Cores dominantes de um screenshot, em hex, da mais para a menos frequente.

    Ignora tons quase brancos e quase pretos (fundo e texto).
    """
    from PIL import Image

    with Image.open(image_path) as img:
        small = img.convert("RGB").resize((96, 96))
        quantized = small.quantize(colors=max_colors)
        palette = quantized.getpalette()
        counts = sorted(quantized.getcolors() or [], reverse=True)

    colors = []
    for _, index in counts:
        r, g, b = palette[index * 3:index * 3 + 3]
        brightness = (r + g + b) / 3
        if brightness > 235 or brightness < 20:
            continue
        hex_color = f"#{r:02X}{g:02X}{b:02X}"
        if hex_color not in colors:
            colors.append(hex_color)
    return colors


class ContentExtractor:
    """
    Extrai um ProductData de uma URL.

    Sem cliente LLM, monta o perfil heuristicamente a partir do título,
    meta description e headings da página.
    """

    def __init__(
        self,
        llm: Optional[GeminiClient] = None,
        config: Optional[ScraperConfig] = None,
        screenshots_dir: str = "storage/outputs/screenshots",
    ):
        self.llm = llm
        self.config = config or ScraperConfig()
        self.screenshots_dir = Path(screenshots_dir)

    async def extract(self, url: str) -> ProductData:
        snapshot = await self.capture_page(url)
        logger.info(
            f"Captured {url}: {len(snapshot.text)} chars, "
            f"{len(snapshot.images)} images, {len(snapshot.logos)} logos"
        )

        if self.llm is not None:
            product = await self._analyze_with_llm(snapshot)
        else:
            product = self._analyze_heuristically(snapshot)

        if not product.images and snapshot.images:
            product.images = snapshot.images[:5]
        product.logos = product.logos or snapshot.logos[:3]
        product.source_url = url

        if snapshot.screenshot_path:
            product.screenshots = [snapshot.screenshot_path]
            try:
                palette = extract_palette(snapshot.screenshot_path)
            except OSError as e:
                logger.warning(f"Could not read screenshot palette: {e}")
                palette = []
            if len(palette) >= 3:
                product.colors = BrandColors(
                    primary=palette[0], secondary=palette[1], accent=palette[2]
                )

        return product

    async def capture_page(self, url: str) -> PageSnapshot:
        """Renderiza a página e coleta seu conteúdo."""
        from playwright.async_api import async_playwright, Error as PlaywrightError

        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(args=["--no-sandbox"])
                try:
                    page = await browser.new_page(viewport={"width": 1440, "height": 900})
                    await page.goto(
                        url,
                        wait_until="networkidle",
                        timeout=self.config.navigation_timeout_ms,
                    )
                    await page.wait_for_timeout(self.config.settle_ms)

                    content = await page.evaluate(PAGE_CONTENT_SCRIPT)

                    screenshot_path = None
                    if self.config.capture_screenshots:
                        self.screenshots_dir.mkdir(parents=True, exist_ok=True)
                        target = self.screenshots_dir / f"hero-{uuid.uuid4().hex[:8]}.png"
                        await page.screenshot(path=str(target))
                        screenshot_path = str(target)
                finally:
                    await browser.close()
        except PlaywrightError as e:
            raise ContentExtractionError(f"Falha ao carregar {url}: {e}") from e

        return PageSnapshot(
            url=url,
            title=content.get("title", ""),
            description=content.get("description", ""),
            headings=content.get("headings", []),
            images=content.get("images", [])[:self.config.max_images],
            logos=content.get("logos", []),
            text=(content.get("bodyText") or "")[:self.config.max_text_chars],
            screenshot_path=screenshot_path,
        )

    async def _analyze_with_llm(self, snapshot: PageSnapshot) -> ProductData:
        prompt = (
            f"URL: {snapshot.url}\n"
            f"Title: {snapshot.title}\n"
            f"Meta description: {snapshot.description}\n"
            f"Headings: {' | '.join(snapshot.headings)}\n"
            f"Images: {', '.join(snapshot.images[:10])}\n\n"
            f"Page Content:\n{snapshot.text}"
        )
        try:
            data = await self.llm.generate_json(prompt, system_instruction=EXTRACTION_SYSTEM_PROMPT)
            return ProductData.model_validate(data)
        except (LLMResponseError, ValidationError) as e:
            raise ContentExtractionError(f"Resposta inválida ao analisar {snapshot.url}: {e}") from e

    def _analyze_heuristically(self, snapshot: PageSnapshot) -> ProductData:
        if not (snapshot.title or snapshot.headings):
            raise ContentExtractionError(f"Página sem conteúdo utilizável: {snapshot.url}")

        name = snapshot.title.split("|")[0].split(" - ")[0].strip() or snapshot.headings[0]
        tagline = snapshot.description or (snapshot.headings[0] if snapshot.headings else "")
        features = [
            ProductFeature(title=heading, description="")
            for heading in snapshot.headings[1:6]
        ]
        return ProductData(
            name=name[:80],
            tagline=tagline[:140],
            description=snapshot.description or snapshot.text[:300],
            features=features,
        )
