"""Celeryワーカー等のコマンドライン側エントリポイント"""
