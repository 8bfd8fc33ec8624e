"""
服務層

這個 package 包含純計算邏輯與外部協作者的轉接，不負責狀態轉換：
- RegionService：目標範圍與猜測判定
- ScoreService：計時、高分比較與持久化
- GeocodingService：地址轉座標
- LocationService：固定的校園地點與地圖設定
- HistoryService：回合歷史與結算文字
"""
