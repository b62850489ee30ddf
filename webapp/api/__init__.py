"""API共通部品（ページング・フィルタ解釈）"""
