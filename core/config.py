"""
轉碼器統一配置管理
所有環境變數的單一真理來源，啟動後只讀
"""

import os
from dotenv import load_dotenv

# 載入 .env 檔案（僅開發環境需要）
load_dotenv()


class Settings:
    """統一配置管理中心"""

    # ===== 環境檢測 =====
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    IS_PRODUCTION: bool = ENVIRONMENT == "production"

    # ===== 伺服器配置 =====
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8080"))

    # ===== Gzip 轉碼配置 =====
    # 低於此大小的回應不壓縮（壓縮開銷大於節省）
    GZIP_MINIMUM_COMPRESSIBLE_LENGTH: int = int(
        os.getenv("GZIP_MINIMUM_COMPRESSIBLE_LENGTH", "1400")
    )
    # 串流複製時每次讀取的位元組數
    GZIP_COPY_BUFFER_SIZE: int = int(os.getenv("GZIP_COPY_BUFFER_SIZE", "81920"))

    @classmethod
    def validate(cls) -> bool:
        """
        驗證配置值是否合理

        Returns:
            bool: 配置是否可用
        """
        import logging
        logger = logging.getLogger("core.config")

        if cls.GZIP_MINIMUM_COMPRESSIBLE_LENGTH < 0:
            logger.error(
                f"GZIP_MINIMUM_COMPRESSIBLE_LENGTH 不可為負數: {cls.GZIP_MINIMUM_COMPRESSIBLE_LENGTH}"
            )
            return False

        if cls.GZIP_COPY_BUFFER_SIZE <= 0:
            logger.error(f"GZIP_COPY_BUFFER_SIZE 必須大於 0: {cls.GZIP_COPY_BUFFER_SIZE}")
            return False

        return True

    @classmethod
    def print_summary(cls) -> None:
        """列印當前配置摘要"""
        print("\n" + "=" * 60)
        print("📋 Response Transcoder 配置摘要")
        print("=" * 60)
        print(f"環境模式: {cls.ENVIRONMENT}")
        print(f"是否為生產環境: {cls.IS_PRODUCTION}")
        print(f"伺服器監聽: {cls.HOST}:{cls.PORT}")
        print(f"最小壓縮大小: {cls.GZIP_MINIMUM_COMPRESSIBLE_LENGTH} bytes")
        print(f"複製緩衝大小: {cls.GZIP_COPY_BUFFER_SIZE} bytes")
        print("=" * 60 + "\n")


# 建立全域設定實例（單例模式）
settings = Settings()


if __name__ != "__main__":
    import logging
    logger = logging.getLogger("core.config")

    if not settings.validate():
        logger.warning("⚠️ 配置驗證失敗，建立 GzipMiddleware 時將拋出 ConfigurationError")

    if not settings.IS_PRODUCTION and os.getenv("TRANSCODER_SHOW_CONFIG", "false").lower() == "true":
        settings.print_summary()
