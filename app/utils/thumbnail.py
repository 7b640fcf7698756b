# app/utils/thumbnail.py
from typing import Optional
from bs4 import BeautifulSoup


def extract_first_image_url(content: Optional[str]) -> Optional[str]:
    """
    리치 텍스트(HTML) 본문에서 첫 번째 이미지의 src를 썸네일 URL로 추출합니다.
    - src가 비어 있는 <img>는 건너뜁니다.
    - 이미지가 없으면 None을 반환합니다.
    같은 본문에 대해 항상 같은 결과를 반환해야 합니다. (수정 시 썸네일 재계산에 사용)
    """
    if not content:
        return None

    soup = BeautifulSoup(content, "html.parser")
    for img in soup.find_all("img"):
        src = (img.get("src") or "").strip()
        if src:
            return src
    return None
