"""
Pipeline 錯誤分類

只有「輸入拒絕」類錯誤會同步回報給呼叫端；解壓縮、探勘、寫入的個別錯誤
只記 log，不會中斷整批處理。每個錯誤帶固定數字 code，對應 JSON 回應
`{"code": ..., "message": ...}`。
"""


class PipelineError(Exception):
    code = 3
    status = 500
    default_message = "Something went wrong"

    def __init__(self, message: str = ""):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ExtractionPending(PipelineError):
    """解壓縮尚未完成；可稍後重試，不算錯誤。"""
    code = 0
    status = 202
    default_message = "The sketch files are still being processed"


class UploadRejected(PipelineError):
    code = 1
    status = 403
    default_message = "Something went wrong with your upload"


class NotAllowed(PipelineError):
    code = 2
    status = 403
    default_message = "You are not allowed to see this page"


class ProjectNotFound(PipelineError):
    code = 3
    status = 404
    default_message = "No project found with this ID"


class InternalFailure(PipelineError):
    code = 3
    status = 500
    default_message = "Something went wrong, please try it again"
