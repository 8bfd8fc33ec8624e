"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理回合階段的轉換
- Controller：管理一場測驗的回合生命週期
- Registry：管理同一個 process 內的多個 session
"""
