"""Domain errors. Every error carries a message that is safe to show the user."""

INVALID_INTAKE_MESSAGE = "有効な画像ファイルを選択してください。"
NO_RESULT_MESSAGE = "AIから解析結果が得られませんでした。"
ANALYSIS_FAILED_MESSAGE = "高度なハイブリッド分析に失敗しました。画像内のMACD等の視認性を確認してください。"


class TradeSenseError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidIntakeError(TradeSenseError):
    """The batch contained no usable image"""

    def __init__(self, message: str = INVALID_INTAKE_MESSAGE):
        super().__init__(message)


class AnalysisError(TradeSenseError):
    """The provider call failed or returned an unusable answer"""

    def __init__(self, message: str = ANALYSIS_FAILED_MESSAGE):
        super().__init__(message)


class InvalidTransition(TradeSenseError):
    """A session operation is not allowed in the current state"""


class SessionNotFound(TradeSenseError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class ImageNotFound(TradeSenseError):
    def __init__(self, image_id: str):
        super().__init__(f"画像 {image_id} は見つかりません。")
        self.image_id = image_id
