"""问卷提交逻辑 -- 不含渲染的作答草稿与校验

组合响应的提交值为 "<选项>||<去首尾空白的文本>"，文本为空时只有 "<选项>"。
消费方按第一个 "||" 拆分。
"""

from .survey import CombinedResponse, OptionsResponse, SurveyResponse, TextResponse

COMBINED_SEPARATOR = "||"


def encode_combined_response(option: str, text: str | None) -> str:
    trimmed = (text or "").strip()
    if not trimmed:
        return option
    return f"{option}{COMBINED_SEPARATOR}{trimmed}"


def decode_combined_response(payload: str) -> tuple[str, str | None]:
    """拆分组合响应，返回 (选项, 文本或 None)"""
    option, sep, text = payload.partition(COMBINED_SEPARATOR)
    if not sep:
        return option, None
    return option, text


def _within_bounds(length: int, min_length: int | None, max_length: int | None) -> bool:
    if max_length is not None and length > max_length:
        return False
    if min_length is not None and length < min_length:
        return False
    return True


def can_submit_text(response: TextResponse, text: str) -> bool:
    trimmed = text.strip()
    if not _within_bounds(len(trimmed), response.min_length, response.max_length):
        return False
    return response.allow_empty or bool(trimmed)


def can_submit_combined(
    response: CombinedResponse,
    selected_option: str | None,
    text: str,
) -> bool:
    if selected_option is None:
        return False
    field = response.text_field
    if field is None:
        return True
    trimmed = text.strip()
    if field.required and not trimmed:
        return False
    if trimmed:
        return _within_bounds(len(trimmed), field.min_length, field.max_length)
    return True


class ResponseDraft:
    """单次作答的草稿状态：已选选项 + 输入文本"""

    def __init__(self, response: SurveyResponse) -> None:
        self.response = response
        self.selected_option: str | None = None
        self._text = ""

    @property
    def text(self) -> str:
        return self._text

    @property
    def _max_length(self) -> int | None:
        if isinstance(self.response, TextResponse):
            return self.response.max_length
        if isinstance(self.response, CombinedResponse) and self.response.text_field:
            return self.response.text_field.max_length
        return None

    def set_text(self, text: str) -> None:
        """超过 maxLength 的输入被截断"""
        max_length = self._max_length
        if max_length is not None and len(text) > max_length:
            text = text[:max_length]
        self._text = text

    def select_option(self, option: str) -> None:
        if isinstance(self.response, TextResponse):
            raise ValueError("文本响应没有可选项")
        if option not in self.response.options:
            raise ValueError(f"无效选项: {option}")
        self.selected_option = option

    def can_submit(self) -> bool:
        if isinstance(self.response, OptionsResponse):
            return self.selected_option is not None
        if isinstance(self.response, TextResponse):
            return can_submit_text(self.response, self._text)
        return can_submit_combined(self.response, self.selected_option, self._text)

    def build_payload(self) -> str:
        """构造提交值

        Raises:
            ValueError: 当前草稿不满足提交条件
        """
        if not self.can_submit():
            raise ValueError("当前作答不满足提交条件")
        if isinstance(self.response, OptionsResponse):
            return self.selected_option
        if isinstance(self.response, TextResponse):
            return self._text.strip()
        return encode_combined_response(self.selected_option, self._text)
