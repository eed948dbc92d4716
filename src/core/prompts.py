"""
Prompts for the auxiliary title, summary and image analysis calls.
"""

from __future__ import annotations

# Title generation: one short Japanese title for the first user message
TITLE_PROMPT = "このチャットの内容を20文字以内で要約してタイトルを生成してください。"

# Summary generation: appended as the last user turn of the chat being summarized
SUMMARY_PROMPT = "このチャットの主なトピックと重要なポイントを1-2文で要約してください。"

# Quote characters removed from generated titles
TITLE_QUOTE_CHARS = "\"'“”「」『』"

# Lower temperature for consistent titles and summaries
AUXILIARY_TEMPERATURE = 0.3

# Image analysis: sent with the image at high detail
IMAGE_ANALYSIS_PROMPT = """この画像について以下の点を分析してください：
1. 画像内のテキストがある場合は、そのテキストを正確に抽出
2. 画像の主な内容の説明
3. 重要な詳細や特徴
できるだけ簡潔に日本語で回答してください。"""
